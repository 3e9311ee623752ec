#!/usr/bin/env python3
"""
Interactive CLI for the branch-visit engine.

Book a slot, follow the live status, and watch the system move the visit
along (Arrived -> In Progress -> Completed) in the background.
"""
import os
import shlex
import sys
from datetime import date

from dotenv import load_dotenv

from bankvisit import config
from bankvisit.availability import normalize_slot
from bankvisit.errors import BankVisitError, TransitionRejected
from bankvisit.logging_config import bind_session, generate_session_id, setup_structured_logging
from bankvisit.scheduler import create_scheduler
from bankvisit.state import AppointmentCategory
from bankvisit.ticker import StatusTicker

load_dotenv()


def print_banner():
    """Print welcome banner."""
    print("\n" + "="*70)
    print("🏦  SMARTBANK BRANCH VISITS - Interactive CLI")
    print("="*70)
    print("\nCommands:")
    print("  /services                          - List services")
    print("  /branches                          - List branches")
    print("  /recommend SERVICE BRANCH [DATE]   - Best slot for a day")
    print("  /book SERVICE BRANCH SLOT [DATE]   - Book a visit (SLOT like 10:30AM)")
    print("  /status [ID]                       - Live status and wait estimate")
    print("  /arrive ID                         - Mark arrival")
    print("  /cancel ID                         - Cancel a visit")
    print("  /reschedule ID SLOT                - Move a visit to another slot")
    print("  /list [CATEGORY]                   - active, upcoming, completed, cancelled, expired, all")
    print("  /quit                              - Exit")
    print("\n" + "="*70 + "\n")


def parse_date(args, index):
    return date.fromisoformat(args[index]) if len(args) > index else date.today()


def show_status(scheduler, appointment_id=None):
    appointment = (
        scheduler.get_appointment(appointment_id) if appointment_id
        else scheduler.active_appointment()
    )
    if appointment is None:
        print("No active visit. Book one with /book.")
        return

    service = scheduler.get_service(appointment.service_id)
    estimate = scheduler.get_wait_estimate(appointment.id)
    countdown = scheduler.countdown(appointment.id)

    print("\n" + "-"*70)
    print(f"📍 {appointment.id}  {service.label}")
    print(f"   {appointment.branch_name} • {appointment.visit_date} • {appointment.time_slot}")
    print(f"   Status: {appointment.status.value}")
    print(f"   Expected wait: ~{estimate.estimate_minutes} min "
          f"({estimate.confidence} confidence, {estimate.ahead_count} ahead)")
    if countdown is not None:
        print(f"   Next system update in {countdown}s")
    print("-"*70 + "\n")


def handle(scheduler, command, args):
    if command == "/services":
        for service in scheduler.services.values():
            print(f"  {service.id:<14} {service.label} (~{service.average_time} min)")
    elif command == "/branches":
        for branch in scheduler.branches.values():
            print(f"  {branch.id:<12} {branch.name}, {branch.city}")
    elif command == "/recommend":
        recommendation, advisory = scheduler.explain_recommendation(
            args[0], args[1], parse_date(args, 2), bookable_only=True
        )
        print(f"\n✨ Recommended: {recommendation.recommended_slot} "
              f"({recommendation.crowd_label.value} crowd, "
              f"branch load {recommendation.average_load_percent}%)")
        if recommendation.alternatives:
            print(f"   Also good: {', '.join(recommendation.alternatives)}")
        print(f"   {advisory.text}\n")
    elif command == "/book":
        user_name = os.getenv("BANK_USER", "Customer")
        appointment = scheduler.book_slot(
            args[0], args[1], parse_date(args, 3), normalize_slot(args[2]), user_name
        )
        print(f"✅ Booked {appointment.id} at {appointment.time_slot}")
        show_status(scheduler, appointment.id)
    elif command == "/status":
        show_status(scheduler, args[0] if args else None)
    elif command in ("/arrive", "/cancel"):
        action = scheduler.mark_arrival if command == "/arrive" else scheduler.cancel
        result = action(args[0])
        if result.accepted:
            print(f"✅ {result.appointment_id}: {result.from_status.value} -> {result.status.value}")
        else:
            print(f"❌ {result.reason}")
    elif command == "/reschedule":
        try:
            appointment = scheduler.reschedule_to(args[0], normalize_slot(args[1]))
        except TransitionRejected as e:
            print(f"❌ {e}")
            return
        print(f"🔁 {appointment.rescheduled_from} replaced by {appointment.id} "
              f"at {appointment.time_slot}")
    elif command == "/list":
        category = AppointmentCategory(args[0]) if args else AppointmentCategory.ALL
        appointments = scheduler.list_appointments(category)
        if not appointments:
            print("  (none)")
        for appointment in appointments:
            print(f"  {appointment.id}  {appointment.visit_date} {appointment.time_slot}  "
                  f"{appointment.status.value:<11} {appointment.service_id}")
    else:
        print("Unknown command. Type /help.")


def main():
    """Run the interactive CLI."""
    setup_structured_logging(config.LOG_LEVEL, json_output=False, stream=sys.stderr)
    bind_session(generate_session_id())
    print_banner()

    scheduler = create_scheduler()
    ticker = StatusTicker(scheduler, stop_when_idle=False)

    with ticker:
        while True:
            try:
                line = input("visit> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\n👋 Goodbye!")
                break

            if not line:
                continue
            parts = shlex.split(line)
            command, args = parts[0].lower(), parts[1:]

            if command in ("/quit", "/exit"):
                print("👋 Goodbye!")
                break
            if command == "/help":
                print_banner()
                continue

            try:
                handle(scheduler, command, args)
            except BankVisitError as e:
                print(f"❌ {e}")
            except (IndexError, ValueError) as e:
                print(f"❌ Invalid arguments: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
