"""Best-effort work that follows a committed label purchase.

Each task runs in its own error boundary. A failing task is logged and
skipped; it never changes the purchase outcome.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

import httpx

from shipquote.config import EngineConfig
from shipquote.db.repository import OrderRepository
from shipquote.easypost_client import PurchasedLabel
from shipquote.storage import LabelStorage

logger = logging.getLogger(__name__)

SideTask = tuple[str, Callable[[], Any]]


@dataclass
class SideTaskReport:
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def run_side_tasks(tasks: list[SideTask], on_error: Callable[[], Any] | None = None) -> SideTaskReport:
    """Run every task; exceptions are logged and swallowed."""
    report = SideTaskReport()
    for name, task in tasks:
        try:
            task()
        except Exception as e:
            logger.warning("Side task %s failed: %s", name, e, exc_info=True)
            report.failed.append(name)
            if on_error is not None:
                try:
                    on_error()
                except Exception:
                    logger.exception("Cleanup after side task %s failed", name)
        else:
            report.completed.append(name)
    return report


def download_label(url: str, timeout: float = 30.0) -> tuple[bytes, str]:
    response = httpx.get(url, timeout=timeout, follow_redirects=True)
    response.raise_for_status()
    content_type = response.headers.get("content-type", "application/pdf").split(";")[0].strip()
    return response.content, content_type


class LabelArtifacts:
    """Builds the post-purchase task list for an order."""

    def __init__(
        self,
        orders: OrderRepository,
        client: Any,
        config: EngineConfig,
        storage: LabelStorage | None = None,
        downloader: Callable[[str], tuple[bytes, str]] = download_label,
    ):
        self.orders = orders
        self.client = client
        self.config = config
        self.storage = storage if storage is not None else LabelStorage(config)
        self.downloader = downloader

    def tasks_for(self, order_id: UUID, order_ref: str, label: PurchasedLabel) -> list[SideTask]:
        tasks: list[SideTask] = [
            ("shipping_log", lambda: self.append_log(order_id, label)),
            ("packing_slip", lambda: self.generate_form(
                order_id, label, self.config.packing_slip_form_type, "packing_slip_url"
            )),
            ("qr_code", lambda: self.generate_form(
                order_id, label, self.config.qr_form_type, "qr_code_url"
            )),
        ]
        if self.storage.is_configured() and label.label_url:
            tasks.append(("label_archive", lambda: self.archive_label(order_id, order_ref, label)))
        return tasks

    def run(self, order_id: UUID, order_ref: str, label: PurchasedLabel) -> SideTaskReport:
        report = run_side_tasks(
            self.tasks_for(order_id, order_ref, label),
            on_error=self.orders.db.rollback,
        )
        if report.failed:
            logger.warning(
                "Label for order %s purchased; side tasks failed: %s",
                order_ref,
                ", ".join(report.failed),
            )
        return report

    def append_log(self, order_id: UUID, label: PurchasedLabel) -> None:
        carrier = " ".join(part for part in (label.carrier, label.service) if part)
        self.orders.append_log_entry(
            order_id,
            status="label_created",
            message=f"Label generated via EasyPost ({carrier})" if carrier else "Label generated via EasyPost",
            tracking_number=label.tracking_number,
            label_url=label.label_url,
        )

    def generate_form(self, order_id: UUID, label: PurchasedLabel, form_type: str, column: str) -> None:
        url = self.client.generate_form(label.shipment_id, form_type)
        if not url:
            raise RuntimeError(f"{form_type} form returned no URL")
        self.orders.set_artifact_urls(order_id, **{column: url})

    def archive_label(self, order_id: UUID, order_ref: str, label: PurchasedLabel) -> None:
        content, content_type = self.downloader(label.label_url)
        result = self.storage.upload_label(order_ref, label.shipment_id, content, content_type)
        if not result.success:
            raise RuntimeError(result.error or "label upload failed")
        self.orders.set_artifact_urls(order_id, label_archive_url=result.url)
