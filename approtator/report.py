import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from approtator.models import ActionOutcome, StakeAction

logger = logging.getLogger(__name__)

SINGLE_HEADER = ["address", "response", "success"]
TRANSFER_HEADER = ["oldAddress", "newAddress", "response", "success"]


def render_report(action: StakeAction, outcomes: Sequence[ActionOutcome]) -> str:
    """Build the whole CSV document in memory, one row per outcome."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    if action.is_transfer:
        writer.writerow(TRANSFER_HEADER)
        for o in outcomes:
            writer.writerow([o.address, o.new_address, o.response, str(o.success).lower()])
    else:
        writer.writerow(SINGLE_HEADER)
        for o in outcomes:
            writer.writerow([o.address, o.response, str(o.success).lower()])
    return buffer.getvalue()


def timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp, safe for file names."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return stamp.replace(":", "_")


def report_path(action: StakeAction, output_dir: Path, now: Optional[datetime] = None) -> Path:
    return Path(output_dir) / f"{timestamp(now)}-app_{action.value}-results.csv"


def write_report(action: StakeAction, outcomes: Sequence[ActionOutcome], output_dir: Path,
                 now: Optional[datetime] = None) -> Path:
    content = render_report(action, outcomes)
    path = report_path(action, output_dir, now)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Wrote %d rows to %s", len(outcomes), path)
    return path
