"""Webhook delivery mode: a FastAPI app that feeds Telegram updates to the bot."""
