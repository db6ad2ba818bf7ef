# medtracker/adapters/telegram_sink.py
from __future__ import annotations

import logging
from typing import Any, Optional

from aiogram import Bot, Dispatcher, F
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup

from medtracker.core.i18n import fmt
from medtracker.core.logging_utils import kv

CB_PREFIX = "rem:"


class TelegramNotificationSink:
    """
    Delivers reminder notifications to one Telegram chat via aiogram 3.x.

    • show() posts the message with Taken / Snooze / Skip buttons; the handle is the message id.
    • close() deletes that message.
    • Button taps are routed to the tracker once attach_tracker() was called.
    Telegram failures never propagate: show() degrades to None, close() to a no-op.
    """

    def __init__(self, bot: Bot, chat_id: int, *, snooze_minutes: int = 10) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.snooze_minutes = snooze_minutes
        self.tracker: Any = None
        self.dp: Optional[Dispatcher] = None
        self.log = logging.getLogger("medtracker.sink")

    @classmethod
    def from_token(cls, token: str, chat_id: int, **kwargs: Any) -> "TelegramNotificationSink":
        return cls(Bot(token=token), chat_id, **kwargs)

    def attach_tracker(self, tracker: Any) -> None:
        self.tracker = tracker
        self.log.debug("sink.tracker.attached " + kv(kind=type(tracker).__name__))

    # ------------------------------------------------------------------------------
    # Keyboard
    # ------------------------------------------------------------------------------
    def build_keyboard(self, reminder_id: str) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            inline_keyboard=[
                [
                    InlineKeyboardButton(
                        text=fmt("btn_taken"), callback_data=f"{CB_PREFIX}TAKE:{reminder_id}"
                    ),
                    InlineKeyboardButton(
                        text=fmt("btn_snooze", minutes=self.snooze_minutes),
                        callback_data=f"{CB_PREFIX}SNOOZE:{reminder_id}",
                    ),
                ],
                [
                    InlineKeyboardButton(
                        text=fmt("btn_missed"), callback_data=f"{CB_PREFIX}MISS:{reminder_id}"
                    )
                ],
            ]
        )

    # ------------------------------------------------------------------------------
    # NotificationSink
    # ------------------------------------------------------------------------------
    async def show(self, title: str, options: dict[str, Any]) -> Optional[int]:
        data = options.get("data") or {}
        reminder_id = data.get("reminderId")
        text = fmt("telegram_line", title=title, body=options.get("body", ""))
        markup = self.build_keyboard(reminder_id) if reminder_id else None
        try:
            msg = await self.bot.send_message(
                chat_id=self.chat_id,
                text=text,
                reply_markup=markup,
                disable_notification=bool(options.get("silent", False)),
            )
        except Exception as e:
            self.log.warning(
                "sink.send.fail " + kv(chat_id=self.chat_id, reminder_id=reminder_id, err=str(e))
            )
            return None
        self.log.info(
            "sink.send " + kv(chat_id=self.chat_id, reminder_id=reminder_id, msg_id=msg.message_id)
        )
        return msg.message_id

    async def send_text(self, text: str) -> Optional[int]:
        """Plain chat message (startup greeting); best-effort."""
        try:
            msg = await self.bot.send_message(chat_id=self.chat_id, text=text)
        except Exception as e:
            self.log.warning("sink.text.fail " + kv(chat_id=self.chat_id, err=str(e)))
            return None
        self.log.info("msg.out.chat " + kv(chat_id=self.chat_id, text=text))
        return msg.message_id

    async def close(self, handle: int) -> None:
        try:
            await self.bot.delete_message(self.chat_id, handle)
        except Exception as e:
            self.log.debug("sink.delete.fail " + kv(chat_id=self.chat_id, msg_id=handle, err=str(e)))

    # ------------------------------------------------------------------------------
    # Button taps
    # ------------------------------------------------------------------------------
    def build_dispatcher(self) -> Dispatcher:
        self.dp = Dispatcher()
        self.dp.callback_query.register(self.on_callback, F.data.startswith(CB_PREFIX))
        return self.dp

    async def on_callback(self, callback: CallbackQuery) -> None:
        data = callback.data or ""
        _, _, rest = data.partition(CB_PREFIX)
        action, _, reminder_id = rest.partition(":")
        self.log.info(
            "cb.in " + kv(chat_id=self.chat_id, action=action, reminder_id=reminder_id)
        )

        if self.tracker is None or not reminder_id:
            await self._answer(callback, fmt("cb_unknown"))
            return

        if action == "TAKE":
            result = await self.tracker.mark_taken(reminder_id)
            toast = fmt("cb_taken")
        elif action == "SNOOZE":
            result = await self.tracker.snooze(reminder_id, self.snooze_minutes)
            toast = fmt("cb_snoozed", minutes=self.snooze_minutes)
        elif action == "MISS":
            result = await self.tracker.mark_missed(reminder_id)
            toast = fmt("cb_missed")
        else:
            self.log.debug("cb.ignored " + kv(action=action))
            return

        await self._answer(callback, toast if result is not None else fmt("cb_unknown"))

    async def _answer(self, callback: CallbackQuery, text: str) -> None:
        # Acknowledge the callback to clear the Telegram spinner
        try:
            await callback.answer(text, show_alert=False)
        except Exception as e:
            self.log.debug("cb.answer.fail " + kv(err=str(e)))

    async def run_polling(self) -> None:
        dp = self.dp or self.build_dispatcher()
        self.log.debug("polling.run")
        await self.bot.delete_webhook(drop_pending_updates=True)
        await dp.start_polling(self.bot)


__all__ = ["TelegramNotificationSink", "CB_PREFIX"]
