"""Clean-Master build: raw Shopify and Squarespace exports into one canonical table.

The build is resumable. Every invocation works for at most
``build.soft_limit_seconds``, checkpointing after each chunk of raw rows, and
the next invocation continues from the persisted BuildState:

    NOT_STARTED -> PLATFORM_A -> PLATFORM_B -> DONE

Order-level totals (discount, refund, net revenue) land on exactly one line
per order; every other line of the order carries zeros, so summing a totals
column over the table never double counts.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

from .coercion_utils import clean_str, has_value, parse_money, parse_qty, truthy
from .common.config_validator import AppConfig
from .exclusions.banned_list import BannedList, BannedListCache, is_banned_email
from .exclusions.products import is_banned_product, matches_renewal_rule
from .logging_utils import EventLog, get_event_log
from .output.excel_formatting import export_formatted_workbook
from .pricing_utils import PricedLine, repair_line_pricing
from .standards.naming import normalize_email
from .standards.schemas import (
    CLEAN_HEADERS,
    SHOPIFY_SCHEMA,
    SQUARESPACE_SCHEMA,
    CanonicalOrderLine,
    ColumnMap,
    Platform,
    resolve_columns,
)
from .storage.locking import build_lock
from .storage.state_store import BuildPhase, BuildState, BuildStateRepository, PropertyStore
from .storage.tables import FIRST_DATA_ROW, CanonicalTable, RawOrderStore, Workbook, is_blank_row


LOGGER = logging.getLogger("orderrecon.clean_master")

EVENT_SOURCE = "All_Orders_Clean"


def order_key(platform: Platform, order_id: str) -> str:
    return f"{platform.value}||{order_id}"


def customer_name(first: object, last: object) -> str:
    return " ".join(part for part in (clean_str(first), clean_str(last)) if part)


@dataclass
class BuildResult:
    status: str  # "paused" | "complete"
    message: str
    written: int
    excluded: int
    phase: BuildPhase
    export_path: Optional[Path] = None

    @property
    def complete(self) -> bool:
        return self.status == "complete"


@dataclass
class OrderLineGroup:
    """Every surviving Squarespace line of one order ID, not yet written."""

    order_id: str
    order_number: str
    order_date: Optional[datetime]
    email_raw: str
    customer_name: str
    discount: float
    refund: float
    net_revenue: float
    currency: str
    fulfillment_status: str
    products: List[str] = field(default_factory=list)
    skus: List[str] = field(default_factory=list)
    lines: List[PricedLine] = field(default_factory=list)

    def add(self, product: str, sku: str, line: PricedLine) -> None:
        self.products.append(product)
        self.skus.append(sku)
        self.lines.append(line)


class CleanMasterBuilder:
    """Runs one bounded slice of the build under the single-writer lock."""

    def __init__(
        self,
        config: AppConfig,
        workbook: Workbook,
        state_repo: BuildStateRepository,
        banned_cache: BannedListCache,
        event_log: Optional[EventLog] = None,
        clock: Callable[[], float] = time.monotonic,
        user_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.workbook = workbook
        self.state_repo = state_repo
        self.banned_cache = banned_cache
        self.event_log = event_log
        self.clock = clock
        self.user_logger = user_logger or logging.getLogger("orderrecon.user")
        self.output: CanonicalTable = workbook.canonical_table(config.sheets.clean_output, CLEAN_HEADERS)
        self._started = 0.0

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        clock: Callable[[], float] = time.monotonic,
        user_logger: Optional[logging.Logger] = None,
    ) -> "CleanMasterBuilder":
        return cls(
            config=config,
            workbook=Workbook(config.paths.workbook_dir),
            state_repo=BuildStateRepository(PropertyStore(config.paths.state_file), config.build.state_key),
            banned_cache=BannedListCache(config.paths.banned_list, config.exclusions.always_banned_domains),
            event_log=get_event_log(config),
            clock=clock,
            user_logger=user_logger,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def run(self) -> BuildResult:
        """Advance the build as far as the time budget allows.

        Raises BuildLockTimeout when another invocation holds the lock, and
        ConfigurationError when a raw store or required column is missing.
        Neither touches the persisted state.
        """
        with build_lock(self.config.paths.lock_file, self.config.build.lock_timeout_seconds):
            return self._run_locked()

    def _run_locked(self) -> BuildResult:
        sheets = self.config.sheets
        store_a = self.workbook.raw_store(sheets.platform_a)
        store_b = self.workbook.raw_store(sheets.platform_b)
        cols_a = self._resolve(store_a, SHOPIFY_SCHEMA)
        cols_b = self._resolve(store_b, SQUARESPACE_SCHEMA)
        banned = self.banned_cache.get()

        self._started = self.clock()
        state = self.state_repo.load()
        phase = state.phase if state is not None else BuildPhase.NOT_STARTED
        LOGGER.info("Clean-Master build invoked at phase %s", phase.value)

        while True:
            if phase is BuildPhase.NOT_STARTED:
                self.output.prepare()
                state = BuildState()
                self.state_repo.save(state)
                self.user_logger.info(f"Started fresh build of {sheets.clean_output}")
                phase = state.phase
            elif phase is BuildPhase.PLATFORM_A:
                paused = self._process_platform_a(state, store_a, cols_a, banned)
                if paused is not None:
                    return paused
                phase = state.phase
            elif phase is BuildPhase.PLATFORM_B:
                paused = self._process_platform_b(state, store_b, cols_b, banned)
                if paused is not None:
                    return paused
                phase = BuildPhase.DONE
            else:
                return self._finish(state)

    @staticmethod
    def _resolve(store: RawOrderStore, schema) -> Optional[ColumnMap]:
        # A store without data rows contributes nothing and is not validated
        if store.last_row < FIRST_DATA_ROW:
            return None
        return resolve_columns(store.headers, schema, store.name)

    def _time_up(self) -> bool:
        return self.clock() - self._started > self.config.build.soft_limit_seconds

    def _write_buffer(self, state: BuildState, buffer: List[List[object]]) -> None:
        if not buffer:
            return
        self.output.write_rows(state.out_row, buffer)
        state.out_row += len(buffer)
        state.written_count += len(buffer)
        buffer.clear()

    def _pause(self, state: BuildState) -> BuildResult:
        self.state_repo.save(state)
        message = (
            "Paused (timeout protection). Re-run the Clean-Master build to continue. "
            f"({state.written_count} rows so far)"
        )
        LOGGER.info("Paused at phase=%s row=%d out_row=%d", state.phase.value, state.row_cursor, state.out_row)
        self.user_logger.info(message)
        return BuildResult(
            status="paused",
            message=message,
            written=state.written_count,
            excluded=state.excluded_count,
            phase=state.phase,
        )

    # ------------------------------------------------------------------
    # Platform A: Shopify, one raw row per line item
    # ------------------------------------------------------------------
    def _process_platform_a(
        self,
        state: BuildState,
        store: RawOrderStore,
        cols: Optional[ColumnMap],
        banned: BannedList,
    ) -> Optional[BuildResult]:
        chunk = self.config.build.chunk_rows
        totaled: Set[str] = set(state.totaled_order_keys)
        last_row = store.last_row
        row = state.row_cursor
        if cols is not None:
            while row <= last_row:
                if self._time_up():
                    return self._pause(state)
                take = min(chunk, last_row - row + 1)
                buffer: List[List[object]] = []
                for values in store.read_rows(row, take):
                    line = self._shopify_line(values, cols, banned, state, totaled)
                    if line is not None:
                        buffer.append(line.to_row())
                self._write_buffer(state, buffer)
                row += take
                state.row_cursor = row
                state.totaled_order_keys = sorted(totaled)
                self.state_repo.save(state)
            LOGGER.info("Shopify pass finished: %d rows written so far", state.written_count)

        state.phase = BuildPhase.PLATFORM_B
        state.row_cursor = FIRST_DATA_ROW
        state.last_order_key = ""
        state.totaled_order_keys = []
        self.state_repo.save(state)
        return None

    def _shopify_line(
        self,
        values: Sequence[object],
        cols: ColumnMap,
        banned: BannedList,
        state: BuildState,
        totaled: Set[str],
    ) -> Optional[CanonicalOrderLine]:
        if is_blank_row(values):
            return None
        if truthy(cols.get(values, "test_flag")):
            state.excluded_count += 1
            return None
        email_raw = clean_str(cols.get(values, "email"))
        if email_raw and is_banned_email(email_raw, banned):
            state.excluded_count += 1
            return None

        order_id = clean_str(cols.get(values, "order_id"))
        product = clean_str(cols.get(values, "product_name"))
        if not product:
            return None
        if is_banned_product(product, self.config.exclusions.banned_product_keywords):
            state.excluded_count += 1
            return None

        quantity = parse_qty(cols.get(values, "quantity"))
        unit_price = parse_money(cols.get(values, "unit_price"))

        key = order_key(Platform.SHOPIFY, order_id)
        discount = refund = net = 0.0
        if key not in totaled:
            totaled.add(key)
            state.last_order_key = key
            gross = abs(parse_money(cols.get(values, "total_price")))
            discount = abs(parse_money(cols.get(values, "total_discounts")))
            current = cols.get(values, "current_total_price")
            if has_value(current):
                net = abs(parse_money(current))
            else:
                net = abs(gross - discount)
            refunds = cols.get(values, "total_refunds")
            if has_value(refunds):
                refund = abs(parse_money(refunds))
            else:
                refund = max(0.0, gross - net)

        return CanonicalOrderLine(
            platform=Platform.SHOPIFY,
            order_id=order_id,
            order_number=clean_str(cols.get(values, "order_number")),
            order_date=cols.resolve_date(values),
            customer_email_raw=email_raw,
            customer_email_norm=normalize_email(email_raw),
            customer_name=customer_name(cols.get(values, "first_name"), cols.get(values, "last_name")),
            product_name=product,
            sku=clean_str(cols.get(values, "sku")),
            quantity=quantity,
            unit_price=unit_price,
            line_revenue=quantity * unit_price,
            order_discount_total=discount,
            order_refund_total=refund,
            order_net_revenue=net,
            currency=clean_str(cols.get(values, "currency")),
            financial_status=clean_str(cols.get(values, "financial_status")),
            fulfillment_status=clean_str(cols.get(values, "fulfillment_status")),
            tags=clean_str(cols.get(values, "tags")),
            source_sheet=cols.sheet_name,
        )

    # ------------------------------------------------------------------
    # Platform B: Squarespace, every line of an order gathered before pricing
    # ------------------------------------------------------------------
    def _process_platform_b(
        self,
        state: BuildState,
        store: RawOrderStore,
        cols: Optional[ColumnMap],
        banned: BannedList,
    ) -> Optional[BuildResult]:
        if cols is None:
            return None
        chunk = self.config.build.chunk_rows
        totaled: Set[str] = set(state.totaled_order_keys)
        excluded_ids: Set[str] = set(state.excluded_order_ids)
        order_rows = self._index_order_rows(store, cols)
        buffer: List[List[object]] = []
        last_row = store.last_row
        row = state.row_cursor

        while row <= last_row:
            if self._time_up():
                return self._pause(state)
            take = min(chunk, last_row - row + 1)
            for values in store.read_rows(row, take):
                self._consume_squarespace_row(
                    values, store, cols, banned, state, buffer, order_rows, totaled, excluded_ids
                )
            row += take
            self._write_buffer(state, buffer)
            self._checkpoint_b(state, row, totaled, excluded_ids)
            self.state_repo.save(state)

        LOGGER.info("Squarespace pass finished: %d rows written in total", state.written_count)
        return None

    @staticmethod
    def _index_order_rows(store: RawOrderStore, cols: ColumnMap) -> Dict[str, List[int]]:
        """Sheet row numbers of every raw row, keyed by order ID."""
        ids = store.frame.iloc[:, cols.positions["order_id"]].map(clean_str)
        return {
            order_id: [int(pos) + FIRST_DATA_ROW for pos in positions]
            for order_id, positions in ids.groupby(ids, sort=False).indices.items()
            if order_id
        }

    @staticmethod
    def _checkpoint_b(state: BuildState, next_row: int, totaled: Set[str], excluded_ids: Set[str]) -> None:
        state.row_cursor = next_row
        state.totaled_order_keys = sorted(totaled)
        state.excluded_order_ids = sorted(excluded_ids)

    def _squarespace_row_product(
        self, values: Sequence[object], cols: ColumnMap, banned: BannedList, state: BuildState
    ) -> str:
        """Product of a row that survives the per-row rules; "" when the row is dropped."""
        if truthy(cols.get(values, "test_flag")):
            state.excluded_count += 1
            return ""
        email_raw = clean_str(cols.get(values, "email"))
        if email_raw and is_banned_email(email_raw, banned):
            state.excluded_count += 1
            return ""
        product = clean_str(cols.get(values, "product_name"))
        if not product:
            return ""
        if is_banned_product(product, self.config.exclusions.banned_product_keywords):
            state.excluded_count += 1
            return ""
        return product

    def _consume_squarespace_row(
        self,
        values: Sequence[object],
        store: RawOrderStore,
        cols: ColumnMap,
        banned: BannedList,
        state: BuildState,
        buffer: List[List[object]],
        order_rows: Dict[str, List[int]],
        totaled: Set[str],
        excluded_ids: Set[str],
    ) -> None:
        if is_blank_row(values):
            return
        order_id = clean_str(cols.get(values, "order_id"))
        if not order_id:
            self._squarespace_row_product(values, cols, banned, state)
            return
        key = order_key(Platform.SQUARESPACE, order_id)
        if key in totaled or order_id in excluded_ids:
            # Written (or excluded) together with the order's first row
            return
        totaled.add(key)
        group = self._gather_order(
            order_id, order_rows.get(order_id, []), store, cols, banned, state, excluded_ids
        )
        if group is not None:
            self._flush_group(group, state, buffer)

    def _gather_order(
        self,
        order_id: str,
        rows: Sequence[int],
        store: RawOrderStore,
        cols: ColumnMap,
        banned: BannedList,
        state: BuildState,
        excluded_ids: Set[str],
    ) -> Optional[OrderLineGroup]:
        """Collect every surviving line of ``order_id``, wherever it sits in the store.

        One renewal line excludes the whole order; each of its surviving lines
        is counted as excluded and None is returned.
        """
        rule = self.config.exclusions.renewal_rule
        kept = []
        renewal = False
        for row_number in rows:
            values = store.read_rows(row_number, 1)[0]
            product = self._squarespace_row_product(values, cols, banned, state)
            if not product:
                continue
            order_date = cols.resolve_date(values)
            if rule.enabled and matches_renewal_rule(order_date, product, rule.year, rule.keyword_groups):
                renewal = True
            kept.append((values, product, order_date))

        if renewal:
            excluded_ids.add(order_id)
            state.excluded_count += len(kept)
            LOGGER.debug("Renewal rule excluded Squarespace order %s", order_id)
            return None
        if not kept:
            return None

        values, _, order_date = kept[0]
        grand = abs(parse_money(cols.get(values, "grand_total")))
        refund = abs(parse_money(cols.get(values, "refunded_total")))
        group = OrderLineGroup(
            order_id=order_id,
            order_number=clean_str(cols.get(values, "order_number")),
            order_date=order_date,
            email_raw=clean_str(cols.get(values, "email")),
            customer_name=customer_name(cols.get(values, "first_name"), cols.get(values, "last_name")),
            discount=abs(parse_money(cols.get(values, "discount_total"))),
            refund=refund,
            net_revenue=max(0.0, grand - refund),
            currency=clean_str(cols.get(values, "subtotal_currency"))
            or clean_str(cols.get(values, "grand_total_currency")),
            fulfillment_status=clean_str(cols.get(values, "fulfillment_status")),
        )
        for values, product, _ in kept:
            quantity = parse_qty(cols.get(values, "quantity"))
            unit_raw = cols.get(values, "unit_price")
            unit_price = parse_money(unit_raw) if has_value(unit_raw) else 0.0
            group.add(
                product,
                clean_str(cols.get(values, "sku")),
                PricedLine(quantity=quantity, unit_price=unit_price, line_revenue=quantity * unit_price),
            )
        return group

    def _flush_group(
        self,
        group: OrderLineGroup,
        state: BuildState,
        buffer: List[List[object]],
    ) -> None:
        state.last_order_key = order_key(Platform.SQUARESPACE, group.order_id)
        priced = repair_line_pricing(group.lines, group.net_revenue)
        email_norm = normalize_email(group.email_raw)
        for idx, (product, sku, line) in enumerate(zip(group.products, group.skus, priced)):
            first = idx == 0
            buffer.append(
                CanonicalOrderLine(
                    platform=Platform.SQUARESPACE,
                    order_id=group.order_id,
                    order_number=group.order_number,
                    order_date=group.order_date,
                    customer_email_raw=group.email_raw,
                    customer_email_norm=email_norm,
                    customer_name=group.customer_name,
                    product_name=product,
                    sku=sku,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_revenue=line.line_revenue,
                    order_discount_total=group.discount if first else 0.0,
                    order_refund_total=group.refund if first else 0.0,
                    order_net_revenue=group.net_revenue if first else 0.0,
                    currency=group.currency,
                    financial_status="",
                    fulfillment_status=group.fulfillment_status,
                    tags="",
                    source_sheet=self.config.sheets.platform_b,
                ).to_row()
            )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------
    def _finish(self, state: BuildState) -> BuildResult:
        self.state_repo.delete()
        export_path: Optional[Path] = None
        if self.config.build.export_xlsx:
            export_path = export_formatted_workbook(
                self.output.read_frame(),
                self.output.path.with_suffix(".xlsx"),
                CLEAN_HEADERS,
                self.config.sheets.clean_output,
            )
        message = (
            f"Done. Wrote {state.written_count} rows. "
            f"Excluded {state.excluded_count} rows (test/banned/product/renewal rules)."
        )
        if self.event_log is not None:
            self.event_log.append(EVENT_SOURCE, message, state.written_count)
        LOGGER.info("Clean-Master build complete: written=%d excluded=%d", state.written_count, state.excluded_count)
        self.user_logger.info(message)
        return BuildResult(
            status="complete",
            message=message,
            written=state.written_count,
            excluded=state.excluded_count,
            phase=BuildPhase.DONE,
            export_path=export_path,
        )


def build_all_orders_clean(
    config: AppConfig,
    clock: Callable[[], float] = time.monotonic,
    user_logger: Optional[logging.Logger] = None,
) -> BuildResult:
    """Run (or resume) the Clean-Master build for ``config``."""
    return CleanMasterBuilder.from_config(config, clock=clock, user_logger=user_logger).run()
