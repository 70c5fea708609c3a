from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from scoutwatch.config import settings
from scoutwatch.data.storage import Database
from scoutwatch.domain.models import FormType, ProtocolLayout
from scoutwatch.protocol.codec import FIELD_DELIMITER, encode_form

logger = logging.getLogger(__name__)

GROUP_SEPARATOR = "##"


def format_metric(value) -> str:
    """Up to three decimals, no trailing zeros: 3.0 -> '3', 0.6667 -> '0.667'."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:.3f}".rstrip("0").rstrip(".")


def encode_metrics(df: pd.DataFrame, columns: list[str]) -> str:
    rows = []
    for values in df.to_dict("records"):
        metrics = ",".join(format_metric(values[c]) for c in columns)
        rows.append(f"{int(values['item_id'])},{metrics}")
    return FIELD_DELIMITER.join(rows)


class ReviewService:
    """
    Read-only operator views over stored scouting data: the raw text of a
    team's latest form, per-item summary statistics and free-text comments.
    """

    def __init__(self, db: Database):
        self.db = db

    def reconstruct(self, team_num: int, form_type: Optional[int] = None) -> Optional[str]:
        target = FormType(settings.review.reconstruct_form_type if form_type is None else form_type)
        form = self.db.latest_report(team_num, target)
        if form is None:
            logger.info(f"No {target.name.lower()} form stored for team {team_num}")
            return None
        form.records = self.db.records_for_report(form.form_id)
        return encode_form(form, ProtocolLayout.A)

    def summarize(self, team_num: int) -> str:
        averages = encode_metrics(self.db.aggregate_averages(team_num), ["mean", "std", "count"])
        proportions = encode_metrics(self.db.aggregate_proportions(team_num), ["sum", "count", "rate"])
        return f"{averages}{GROUP_SEPARATOR}{proportions}"

    def comments(self, team_num: int) -> list[str]:
        return self.db.comments(team_num)

    def render_comments(self, team_num: int) -> str:
        return "\n".join(self.comments(team_num))
