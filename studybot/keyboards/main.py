from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

BTN_STOP = "⏹ Stop session"
BTN_WEEK = "📈 My week"
BTN_LEADERBOARD = "🏆 Leaderboard"
BTN_TROPHY = "🛣 Trophy road"
BTN_ZONES = "📍 Zones"


def main_menu_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_ZONES), KeyboardButton(text=BTN_STOP)],
            [KeyboardButton(text=BTN_WEEK), KeyboardButton(text=BTN_TROPHY)],
            [KeyboardButton(text=BTN_LEADERBOARD)],
        ],
        resize_keyboard=True,
        input_field_placeholder="Choose an action…",
        selective=False,
        one_time_keyboard=False,
    )
