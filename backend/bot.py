"""
SnowTap - Telegram Bot

Обработчик команд бота и точка входа в Mini App.
"""

import asyncio
import logging
import os
import sys

from aiogram import Bot, Dispatcher, types
from aiogram.filters import Command
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

sys.path.append(os.path.dirname(__file__))

from snowtap.config import settings
from snowtap.database import close_redis
from snowtap.services.referrals import (
    extract_referral_code_from_start_text,
    store_pending_referral_code,
)


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


dp = Dispatcher()


def build_start_keyboard(webapp_url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text=f"Play {settings.APP_NAME}",
                    web_app=WebAppInfo(url=webapp_url),
                )
            ],
        ]
    )


def build_webapp_url(referral_code: str | None) -> str:
    if referral_code:
        return f"{settings.WEBAPP_URL}?startapp={referral_code}"
    return settings.WEBAPP_URL


@dp.message(Command("start"))
async def cmd_start(message: types.Message):
    """
    Обработчик /start команды.
    Открывает Web App игры; реферальный код сохраняется для авторизации.
    """
    referral_code = extract_referral_code_from_start_text(message.text)

    if referral_code:
        logger.info(f"User {message.from_user.id} has referral: {referral_code}")
        try:
            await store_pending_referral_code(
                message.from_user.id,
                referral_code,
                source="polling-bot",
            )
        except Exception as exc:
            logger.warning(f"Referral fallback save failed for {message.from_user.id}: {exc}")

    welcome_text = (
        f"Hi, {message.from_user.first_name}!\n\n"
        f"<b>{settings.APP_NAME}</b>: tap, mine and invite friends.\n\n"
        f"• Tap to earn coins\n"
        f"• Upgrade your miner and claim it every 3 hours\n"
        f"• Invite friends for +{settings.REFERRAL_REWARD} "
        f"(+{settings.REFERRAL_REWARD_PREMIUM} with Telegram Premium)\n\n"
        f"Press the button below to start!"
    )

    if referral_code:
        welcome_text += "\n\nYou were invited by a friend!"

    await message.answer(
        welcome_text,
        reply_markup=build_start_keyboard(build_webapp_url(referral_code)),
        parse_mode="HTML",
    )


async def main():
    """Запуск бота."""
    logger.info(f"Starting {settings.APP_NAME} Bot...")
    logger.info(f"Web App URL: {settings.WEBAPP_URL}")

    bot = Bot(token=settings.TELEGRAM_BOT_TOKEN)
    await bot.delete_webhook(drop_pending_updates=True)

    logger.info("Bot is running!")
    try:
        await dp.start_polling(bot)
    finally:
        await close_redis()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped")
