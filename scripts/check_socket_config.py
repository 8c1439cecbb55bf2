#!/usr/bin/env python3
"""
Quick check of the environment before running the listener.
Run this to ensure your Slack app and LLM provider are configured.
"""
from dotenv import load_dotenv
import os

load_dotenv()

PROVIDER_KEYS = {
    "openai": {"OPENAI_API_KEY": "OpenAI API key (sk-...)"},
    "anthropic": {"ANTHROPIC_API_KEY": "Anthropic API key"},
    "googleai": {"GOOGLEAI_API_KEY": "Google AI Studio API key"},
    "ollama": {},
}


def check_env():
    """Check if required environment variables are set."""
    provider = (os.getenv("LLM_PROVIDER") or "openai").strip().lower()
    required = {
        "SLACK_BOT_TOKEN": "Bot User OAuth Token (xoxb-...)",
        "SLACK_APP_TOKEN": "App-Level Token for Socket Mode (xapp-...)",
        "SLACK_CHANNEL": "Channel that receives announcements (C...)",
    }
    required.update(PROVIDER_KEYS.get(provider, {}))

    print("=" * 60)
    print("Socket Mode Configuration Check")
    print("=" * 60)
    print(f"LLM provider: {provider}")

    all_good = provider in PROVIDER_KEYS
    if not all_good:
        print(f"✗ LLM_PROVIDER: unsupported ({', '.join(PROVIDER_KEYS)})")

    for var, description in required.items():
        value = os.getenv(var)
        if value:
            # Mask the token for security
            if "TOKEN" in var or "KEY" in var:
                masked = value[:8] + "..." if len(value) > 8 else "***"
                print(f"✓ {var}: {masked}")
            else:
                print(f"✓ {var}: {value}")
        else:
            print(f"✗ {var}: NOT SET ({description})")
            all_good = False

    if os.getenv("SLACK_LOG_ONLY", "").lower() in ("1", "true", "yes"):
        print("! SLACK_LOG_ONLY is on: new emojis will be logged, not announced")

    print("=" * 60)

    if all_good:
        print("\n✓ All required environment variables are set!")
        print("\nNext steps:")
        print("1. Try the LLM provider:")
        print("   slackmoji-notifier generate party_parrot")
        print("\n2. Run the Socket Mode listener:")
        print("   slackmoji-notifier listen")
        print("\n3. Add a custom emoji in your workspace and watch the channel!")
    else:
        print("\n✗ Some environment variables are missing.")
        print("Please add them to your .env file (see .env.example).")

    print()


if __name__ == "__main__":
    check_env()
