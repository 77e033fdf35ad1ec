#!/usr/bin/env python3
"""Run the inbox assistant from the command line.

Accounts come from --microsoft / --google flags; without flags, one default
account is added for every vendor whose OAuth client is configured.

Usage:
    python scripts/run_assistant.py accounts
    python scripts/run_assistant.py login google-default
    python scripts/run_assistant.py login google-default --code 4/0AbC...
    python scripts/run_assistant.py recent --count 20
    python scripts/run_assistant.py priority
    python scripts/run_assistant.py insights
    python scripts/run_assistant.py briefing <meeting-id>
    python scripts/run_assistant.py ask "What did Acme send me this week?"
    python scripts/run_assistant.py monitor --seconds 600
"""
import sys


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="Multi-account email, calendar and notes assistant")
    parser.add_argument("--config", help="YAML config file (default: environment variables)")
    parser.add_argument("--microsoft", action="append", default=[], metavar="ACCOUNT_ID", help="Add a Microsoft account")
    parser.add_argument("--google", action="append", default=[], metavar="ACCOUNT_ID", help="Add a Google account")
    parser.add_argument("--json-logs", action="store_true", help="Structured JSON log output")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("accounts", help="List authenticated accounts")

    login = commands.add_parser("login", help="Log in an account")
    login.add_argument("account_id")
    login.add_argument("--code", help="Authorization code from the Google redirect")

    logout = commands.add_parser("logout", help="Log out an account")
    logout.add_argument("account_id")

    recent = commands.add_parser("recent", help="Most recent emails across accounts")
    recent.add_argument("--count", type=int, default=20)

    priority = commands.add_parser("priority", help="High priority emails")
    priority.add_argument("--count", type=int, default=50)

    commands.add_parser("insights", help="Proactive insights")

    briefing = commands.add_parser("briefing", help="Briefing for a meeting")
    briefing.add_argument("meeting_id")
    briefing.add_argument("--account", help="Account that owns the meeting")

    ask = commands.add_parser("ask", help="Ask a free-form question")
    ask.add_argument("query")

    monitor = commands.add_parser("monitor", help="Watch mailboxes and analyze new mail")
    monitor.add_argument("--seconds", type=float, default=0, help="Stop after N seconds (0 = until Ctrl+C)")
    return parser


async def run(args) -> int:
    import asyncio

    from inbox_agent.config import AssistantConfig
    from inbox_agent.context import AssistantContext

    config = AssistantConfig.from_yaml(args.config) if args.config else AssistantConfig.from_env()
    context = AssistantContext.from_config(config)

    microsoft_ids = args.microsoft or (["microsoft-default"] if config.microsoft.configured else [])
    google_ids = args.google or (["google-default"] if config.google.configured else [])
    for account_id in microsoft_ids:
        context.add_microsoft_account(account_id, on_device_code=lambda flow: print(f"\n🔑 {flow.get('message')}\n"))
    for account_id in google_ids:
        context.add_google_account(account_id)

    await context.initialize()
    try:
        if args.command == "accounts":
            accounts = await context.get_accounts()
            print(f"👤 {len(accounts)} authenticated account(s)")
            for account in accounts:
                print(f"  - {account.id}: {account.email} ({account.provider_type.value})")

        elif args.command == "login":
            if args.code:
                result = await context.complete_google_login(args.account_id, args.code)
            else:
                result = await context.login(args.account_id)
            if result.pending:
                print(f"🌐 Open this URL, then rerun with --code:\n{result.auth_url}")
            elif result.success:
                print(f"✅ Logged in as {result.account_info.email}")
            else:
                print(f"❌ Login failed: {result.error}")
                return 1

        elif args.command == "logout":
            await context.logout(args.account_id)
            print(f"👋 Logged out {args.account_id}")

        elif args.command == "recent":
            for message in await context.manager.get_all_recent_emails(args.count):
                flag = " " if message.is_read else "●"
                print(f"{flag} {message.received_at:%Y-%m-%d %H:%M} {message.sender.display_name}: {message.subject}")

        elif args.command == "priority":
            results = await context.get_priority_emails(args.count)
            print(f"🔴 {len(results)} high priority email(s)")
            for message, analysis in results:
                print(f"  - {message.subject} ({analysis.priority_reason})")
                print(f"    {analysis.summary}")

        elif args.command == "insights":
            insights = await context.generate_insights()
            print(f"💡 {len(insights)} insight(s)")
            for insight in insights:
                print(f"  [{insight.priority.value}] {insight.title}: {insight.description}")

        elif args.command == "briefing":
            briefing = await context.generate_briefing(args.meeting_id, args.account)
            print(f"📅 {briefing.meeting.subject} at {briefing.meeting.start:%Y-%m-%d %H:%M} UTC")
            for name, notes in briefing.attendee_notes.items():
                print(f"  👤 {name}: {', '.join(n.title for n in notes) or 'no notes'}")
            print(f"  📬 {len(briefing.recent_emails)} related email(s)")
            print("  Topics:")
            for topic in briefing.suggested_topics:
                print(f"    - {topic}")

        elif args.command == "ask":
            print(await context.handle_user_query(args.query))

        elif args.command == "monitor":
            await context.start()
            print("👀 Monitoring mailboxes (Ctrl+C to stop)")
            try:
                if args.seconds:
                    await asyncio.sleep(args.seconds)
                else:
                    await asyncio.Event().wait()
            finally:
                await context.stop()
    finally:
        await context.close()
    return 0


def main():
    # Add repository root to path for imports
    sys.path.insert(0, ".")

    import asyncio
    import logging

    from inbox_agent.exceptions import AssistantError
    from inbox_agent.logging_config import setup_logging

    args = build_parser().parse_args()
    if args.json_logs:
        setup_logging("INFO")
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )

    try:
        sys.exit(asyncio.run(run(args)))
    except AssistantError as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n👋 Stopped")


if __name__ == "__main__":
    main()
