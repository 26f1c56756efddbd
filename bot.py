"""
Telegram Bot — the user-facing interface.

Each chat gets its own WeatherApp plus a mounted CityAutocomplete.
Plain text is the search box: every message is a text change, the
suggestion panel is one message edited in place, and tapping a
suggestion commits it. Also serves the weather page dashboard.

Usage:
  python bot.py
"""

import asyncio
import logging
import threading
from typing import Optional

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    Update,
)
from telegram.error import BadRequest, TelegramError
from telegram.ext import (
    ApplicationBuilder,
    CallbackContext,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
    ContextTypes,
)

from config import TELEGRAM_BOT_TOKEN, OWNER_CHAT_ID, HOME_LATITUDE, HOME_LONGITUDE
from abilities.geolocation import from_coordinates, from_location
from autocomplete import CityAutocomplete, UIState
from surface import PointerEvent, Surface
from weather_app import WeatherApp

logging.basicConfig(
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    level=logging.INFO,
)
log = logging.getLogger("bot")

HELP_TEXT = (
    "WeatherEd ☀\n\n"
    "Type a city name — suggestions appear as you type.\n"
    "Tap a suggestion, or send /go to search for exactly what you typed.\n"
    "Share your location to get the weather where you are.\n\n"
    "/go  — search for the current text\n"
    "/show  — show the last suggestions again\n"
    "/stop  — close the search bar\n"
    "/help  — show this message"
)


# ── Auth ────────────────────────────────────────────────────────

def owner_only(func):
    """Restrict to OWNER_CHAT_ID. Set to 0 in .env to allow everyone."""
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        if OWNER_CHAT_ID and update.effective_chat.id != OWNER_CHAT_ID:
            await update.effective_message.reply_text("Not authorized.")
            return
        return await func(update, context)
    return wrapper


# ── Per-chat session ────────────────────────────────────────────

class ChatSession:
    """WeatherApp + CityAutocomplete bound to one chat."""

    def __init__(self, chat_id: int, bot, job_queue):
        self.chat_id = chat_id
        self.bot = bot
        self.job_queue = job_queue
        self.app = WeatherApp()
        self.surface = Surface()
        self.widget = CityAutocomplete(
            self.app.fetch_weather,
            on_change=self._request_render,
            on_notice=self._request_notice,
        )
        self.widget.mount(self.surface)
        self.panel_message_id: Optional[int] = None
        self._dirty = False
        self._render_task: Optional[asyncio.Task] = None

    def close(self):
        self.widget.unmount()

    # Suggestion panel

    def _request_render(self, _widget):
        self._dirty = True
        if self._render_task is None or self._render_task.done():
            self._render_task = asyncio.get_running_loop().create_task(self._render())

    async def _render(self):
        while self._dirty:
            self._dirty = False
            try:
                await self._sync_panel()
            except TelegramError as e:
                log.warning(f"Panel update failed in chat {self.chat_id}: {e}")

    async def _sync_panel(self):
        widget = self.widget
        if not widget.panel_visible:
            if self.panel_message_id is not None:
                message_id, self.panel_message_id = self.panel_message_id, None
                await self.bot.delete_message(chat_id=self.chat_id, message_id=message_id)
            return

        state = widget.state
        markup = None
        if state == UIState.LOADING:
            text = "Searching…"
        elif state == UIState.SHOWING_ERROR:
            text = widget.error
        else:
            text = "Did you mean:"
            markup = InlineKeyboardMarkup([
                [InlineKeyboardButton(label, callback_data=f"pick:{i}")]
                for i, label in enumerate(widget.suggestions)
            ])

        if self.panel_message_id is None:
            msg = await self.bot.send_message(chat_id=self.chat_id, text=text, reply_markup=markup)
            self.panel_message_id = msg.message_id
            return
        try:
            await self.bot.edit_message_text(
                chat_id=self.chat_id,
                message_id=self.panel_message_id,
                text=text,
                reply_markup=markup,
            )
        except BadRequest as e:
            if "not modified" not in str(e).lower():
                raise

    # Transient notice

    def _request_notice(self, message: str):
        asyncio.get_running_loop().create_task(self._send_notice(message))

    async def _send_notice(self, message: str):
        msg = await self.bot.send_message(chat_id=self.chat_id, text=message)
        self.job_queue.run_once(
            _delete_notice,
            when=self.widget.notice_seconds,
            chat_id=self.chat_id,
            data=msg.message_id,
        )

    # Weather result

    async def send_weather(self):
        view = self.app.view()
        if view["error"]:
            await self.bot.send_message(chat_id=self.chat_id, text=view["error"])
            return
        if not view["weather"]:
            return
        try:
            await self.bot.send_video(chat_id=self.chat_id, video=view["video"], caption=view["card"])
        except TelegramError as e:
            log.warning(f"Video send failed ({e}); sending card only")
            await self.bot.send_message(chat_id=self.chat_id, text=view["card"])


async def _delete_notice(context: CallbackContext):
    job = context.job
    try:
        await context.bot.delete_message(chat_id=job.chat_id, message_id=job.data)
    except BadRequest as e:
        log.debug(f"Notice already gone: {e}")


sessions: dict[int, ChatSession] = {}


def get_session(update: Update, context: ContextTypes.DEFAULT_TYPE) -> ChatSession:
    chat_id = update.effective_chat.id
    session = sessions.get(chat_id)
    if session is None:
        session = ChatSession(chat_id, context.bot, context.job_queue)
        sessions[chat_id] = session
        log.info(f"Search bar mounted for chat {chat_id}")
    return session


def outside_click(update: Update):
    """Anything that isn't the search bar dismisses the suggestion panel."""
    session = sessions.get(update.effective_chat.id)
    if session:
        session.surface.dispatch("pointerdown", PointerEvent(target=None))


# ── Command handlers ────────────────────────────────────────────

@owner_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = get_session(update, context)
    keyboard = ReplyKeyboardMarkup(
        [[KeyboardButton("📍 Use my location", request_location=True)]],
        resize_keyboard=True,
    )
    await update.message.reply_text(HELP_TEXT, reply_markup=keyboard)
    await session.app.locate_on_start(from_coordinates(HOME_LATITUDE, HOME_LONGITUDE))
    await session.send_weather()


@owner_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE):
    outside_click(update)
    await update.message.reply_text(HELP_TEXT)


@owner_only
async def cmd_go(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = get_session(update, context)
    if await session.widget.submit():
        await session.send_weather()


@owner_only
async def cmd_show(update: Update, context: ContextTypes.DEFAULT_TYPE):
    get_session(update, context).widget.focus()


@owner_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = sessions.pop(update.effective_chat.id, None)
    if session:
        session.close()
        log.info(f"Search bar unmounted for chat {session.chat_id}")
    await update.message.reply_text("Search closed. /start to open it again.")


@owner_only
async def handle_other_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    outside_click(update)
    await update.message.reply_text("Unknown command. /help for the list.")


@owner_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Each text message replaces the search box contents."""
    text = update.message.text
    if text is None:
        return
    get_session(update, context).widget.on_input(text)


@owner_only
async def handle_pick(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    label = _button_label(query)
    session = get_session(update, context)
    if label and await session.widget.select(label):
        await session.send_weather()


@owner_only
async def handle_location(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = get_session(update, context)
    if await session.widget.locate(from_location(update.message.location)):
        await session.send_weather()


def _button_label(query) -> Optional[str]:
    """Text of the tapped button; the label itself never travels in callback_data."""
    markup = query.message.reply_markup if query.message else None
    if not markup:
        return None
    for row in markup.inline_keyboard:
        for button in row:
            if button.callback_data == query.data:
                return button.text
    return None


# ── Main ────────────────────────────────────────────────────────

def start_dashboard_in_thread():
    """Run the Flask weather page in a background thread."""
    try:
        from dashboard import create_app
        app = create_app(WeatherApp())
        # Suppress Flask request logs in the main console
        flask_log = logging.getLogger("werkzeug")
        flask_log.setLevel(logging.WARNING)
        from config import DASHBOARD_HOST, DASHBOARD_PORT
        log.info(f"Dashboard: http://{DASHBOARD_HOST}:{DASHBOARD_PORT}")
        app.run(host=DASHBOARD_HOST, port=DASHBOARD_PORT, use_reloader=False)
    except Exception as e:
        log.error(f"Dashboard failed to start: {e}")


def main():
    if not TELEGRAM_BOT_TOKEN:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")

    # Start dashboard in background thread
    dash_thread = threading.Thread(target=start_dashboard_in_thread, daemon=True)
    dash_thread.start()

    app = ApplicationBuilder().token(TELEGRAM_BOT_TOKEN).build()

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("go", cmd_go))
    app.add_handler(CommandHandler("show", cmd_show))
    app.add_handler(CommandHandler("stop", cmd_stop))
    app.add_handler(MessageHandler(filters.COMMAND, handle_other_command))
    app.add_handler(CallbackQueryHandler(handle_pick, pattern=r"^pick:"))
    app.add_handler(MessageHandler(filters.LOCATION, handle_location))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    log.info("Bot starting (Telegram polling)...")
    app.run_polling()


if __name__ == "__main__":
    main()
