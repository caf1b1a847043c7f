from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from domain.account import Account
from domain.balance_ledger import BalanceLedger
from domain.base_types import CurrencyCode, normalize_currency
from domain.pricing import Converter

from .formatting import format_money


@dataclass
class AccountBalanceSummary:
    account_id: str
    name: str
    balances: dict[CurrencyCode, Decimal]
    converted_total: Decimal
    include_in_net_worth: bool


@dataclass
class BalanceSummary:
    as_of: datetime
    display_currency: CurrencyCode
    accounts: list[AccountBalanceSummary] = field(default_factory=list)

    @property
    def net_worth(self) -> Decimal:
        return sum(
            (account.converted_total for account in self.accounts if account.include_in_net_worth),
            start=Decimal(0),
        )


def compute_balance_summary(
    accounts: list[Account],
    *,
    ledger: BalanceLedger,
    converter: Converter,
    display_currency: str,
    as_of: datetime | None = None,
) -> BalanceSummary:
    """Read-only view of balances in ``display_currency``; nothing computed here is stored."""
    target = normalize_currency(display_currency)
    summaries: list[AccountBalanceSummary] = []
    for account in accounts:
        balances = ledger.get_balances(account.id)
        converted_total = sum(
            (converter.convert(amount, currency, target) for currency, amount in balances.items()),
            start=Decimal(0),
        )
        summaries.append(
            AccountBalanceSummary(
                account_id=str(account.id),
                name=account.name,
                balances=balances,
                converted_total=converted_total,
                include_in_net_worth=account.include_in_net_worth,
            )
        )

    return BalanceSummary(
        as_of=as_of or datetime.now(timezone.utc),
        display_currency=target,
        accounts=summaries,
    )


def render_balance_summary(summary: BalanceSummary) -> str:
    name_label = "Account"
    value_label = f"Total {summary.display_currency}"

    rows: list[tuple[str, str, str]] = []
    for account in summary.accounts:
        native = ", ".join(format_money(amount, currency) for currency, amount in account.balances.items())
        rows.append((account.name, native or "-", format_money(account.converted_total, summary.display_currency)))

    if not rows:
        return "Balances:\n  (no accounts)"

    name_width = max(len(name_label), max(len(name) for name, _, _ in rows))
    native_width = max(len("Balances"), max(len(native) for _, native, _ in rows))
    value_width = max(len(value_label), max(len(value) for _, _, value in rows))

    header = f"{name_label:<{name_width}} {'Balances':<{native_width}} {value_label:>{value_width}}"
    lines = ["Balances:", header, "-" * len(header)]
    for name, native, value in rows:
        lines.append(f"{name:<{name_width}} {native:<{native_width}} {value:>{value_width}}")
    lines.append("-" * len(header))
    net_worth = format_money(summary.net_worth, summary.display_currency)
    lines.append(f"{'Net worth':<{name_width + native_width + 1}} {net_worth:>{value_width}}")
    return "\n".join(lines)
