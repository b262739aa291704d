#!/usr/bin/env python3
"""
QuizCraft - Main Entry Point

Runs the QuizCraft Discord bot. Configure your bot token in config.json
or set the DISCORD_BOT_TOKEN environment variable.

Usage:
    python main.py

Configuration:
    1. Set your Discord bot token in config.json
    2. Or set DISCORD_BOT_TOKEN environment variable
    3. Customize quiz settings (question directory, data file, timing) in config.json

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

from quizcraft.bot import run_bot


def load_config(config_path: Path = Path("config.json")):
    """Load configuration from config.json file."""
    if not config_path.exists():
        print(f"❌ Error: {config_path} not found!")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in {config_path}: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading {config_path}: {e}")
        sys.exit(1)


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


def setup_logging_from_config(config):
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))

    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


async def run_bot_with_config():
    config = load_config()
    setup_logging_from_config(config)
    token = get_bot_token(config)
    await run_bot(token, config)


if __name__ == "__main__":
    try:
        print("🤖 Starting QuizCraft bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
