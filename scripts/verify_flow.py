#!/usr/bin/env python3
"""
End-to-end walkthrough of the payroll lifecycle.

Initializes a payroll, adds an employee, pays it (as an unrelated bot),
updates it, attaches value to its slot and removes it, printing the state
after each step.  Runs against the configured database; the default
configuration set uses a local SQLite file.

Usage:
    python3 scripts/verify_flow.py                      # default config set
    python3 scripts/verify_flow.py --config-set test    # in-memory SQLite
    python3 scripts/verify_flow.py --company "Acme" --paid-at 1000
    python3 scripts/verify_flow.py --json               # JSON log lines to stderr
"""

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def hline(char: str = "=") -> str:
    return char * W


def banner(title: str) -> None:
    print()
    print(hline())
    print(f"  {title}")
    print(hline())


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def short(key) -> str:
    return str(key)[:12] + "..."


def show_payroll(selector, address) -> None:
    info = selector.get_payroll(address)
    field("payroll", short(info.address))
    field("company", info.company_name)
    field("admin", short(info.admin))
    field("employee_count", info.employee_count)
    field("deposit held", info.balance)


def show_employee(selector, address) -> None:
    info = selector.get_employee(address)
    field("employee", short(info.address))
    field("name / role", f"{info.name} / {info.role}")
    field("schedule", info.schedule)
    field("next_payment_ts", info.next_payment_ts)
    field("last_paid_ts", info.last_paid_ts)
    field("capacity", info.capacity)
    field("slot balance", info.balance)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Payroll kernel walkthrough")
    parser.add_argument("--config-set", default="default")
    parser.add_argument("--company", default="Acme")
    parser.add_argument("--paid-at", type=int, default=1000,
                        help="Trusted timestamp used for the payment")
    parser.add_argument("--json", action="store_true",
                        help="Emit structured logs to stderr")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    from payroll_config import get_active_config
    from payroll_config.loader import log_level_value
    from payroll_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from payroll_kernel.domain.clock import DeterministicClock
    from payroll_kernel.domain.keys import ActorId
    from payroll_kernel.domain.records import EmployeeProfile
    from payroll_kernel.exceptions import PayrollKernelError
    from payroll_kernel.logging_config import configure_logging
    from payroll_kernel.selectors.payroll_selector import PayrollSelector
    from payroll_kernel.services.payroll_service import PayrollService

    config = get_active_config(args.config_set)
    if args.json:
        configure_logging(level=log_level_value(config), stream=sys.stderr)
    else:
        logging.disable(logging.CRITICAL)

    init_engine_from_url(config.database_url)
    create_tables()

    clock = DeterministicClock.at_timestamp(args.paid_at)
    admin = ActorId.generate()
    wallet = ActorId.generate()
    bot = ActorId.generate()

    try:
        with session_scope() as session:
            service = PayrollService.from_config(session, config, clock=clock)
            selector = PayrollSelector(session, service.deriver)
            service.ledger.fund(admin, 1_000_000_000)

            banner("1. initialize_payroll")
            payroll = service.initialize_payroll(admin, args.company)
            show_payroll(selector, payroll)

            banner("2. add_employee (Monthly)")
            employee = service.add_employee(
                admin,
                payroll,
                wallet,
                EmployeeProfile(
                    name="W1",
                    role="Engineer",
                    ciphertext=b"\x01" * 64,
                    input_type=4,
                    pin="1234",
                    schedule="Monthly",
                    next_payment_ts=0,
                ),
            )
            show_employee(selector, employee)
            show_payroll(selector, payroll)

            banner(f"3. pay_employee at T={args.paid_at} (signed by a bot)")
            event = service.pay_employee(bot, payroll, employee)
            field("event seq", event.seq)
            field("event hash", short(event.hash))
            show_employee(selector, employee)

            banner("4. update_employee (custom schedule, shorter payload)")
            service.update_employee(
                admin,
                payroll,
                employee,
                EmployeeProfile(
                    name="W1",
                    role="Lead",
                    ciphertext=b"\x02" * 16,
                    input_type=4,
                    pin="1234",
                    schedule="Quarterly",
                    next_payment_ts=event.next_payment_ts,
                ),
            )
            show_employee(selector, employee)

            banner("5. pay again (custom schedule downgrades to Weekly)")
            clock.advance(60)
            service.pay_employee(bot, payroll, employee)
            show_employee(selector, employee)

            banner("6. attach value, then remove_employee")
            service.ledger.attach_value(admin, employee, 5_000)
            before = service.ledger.balance_of(admin)
            result = service.remove_employee(admin, payroll, employee)
            field("swept to admin", result.swept)
            field("admin balance delta", service.ledger.balance_of(admin) - before)
            field("employee present", selector.find_employee(payroll, wallet) is not None)
            show_payroll(selector, payroll)

            banner("7. event log")
            for entry in service.events.events():
                field(f"#{entry.seq}", f"paid_at={entry.paid_at} "
                      f"next={entry.next_payment_ts} schedule={entry.schedule}")
            field("chain valid", service.events.verify_chain())
    except PayrollKernelError as exc:
        print(f"\nFAILED [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
