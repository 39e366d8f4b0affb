from __future__ import annotations

from decimal import Decimal

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import InventoryStatus
from backend.app.db.models.models_v1 import Article, InventoryLine, InventorySession
from backend.services.reconciliation import get_session

VARIANCE_COLUMNS = [
    "reference",
    "designation",
    "theoretical_qty",
    "counted_qty",
    "variance",
    "unit_price",
    "variance_value",
]

VALUATION_COLUMNS = [
    "reference",
    "designation",
    "stock",
    "stock_min",
    "unit_price",
    "value",
    "below_min",
]

ANOMALY_COLUMNS = [
    "type",
    "severity",
    "reference",
    "designation",
    "stock",
    "stock_min",
    "details",
    "value",
]

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}

# Anomalies : fenêtre des derniers inventaires et seuils d'écart
RECENT_SESSIONS = 5
LARGE_VARIANCE = 5
CRITICAL_VARIANCE = 10
FREQUENT_VARIANCE = 3
FREQUENT_OCCURRENCES = 3


def _price(value: Decimal | None) -> float:
    return float(value) if value is not None else 0.0


def inventory_variance_report(db: Session, session_id: int) -> pd.DataFrame:
    """Une ligne par article compté avec écart non nul, trié par valeur d'écart absolue."""
    get_session(db, session_id)
    rows = db.execute(
        select(InventoryLine, Article)
        .join(Article, Article.id == InventoryLine.article_id)
        .where(InventoryLine.session_id == session_id)
        .where(InventoryLine.variance.is_not(None))
        .where(InventoryLine.variance != 0)
    ).all()

    df = pd.DataFrame(
        [
            {
                "reference": a.reference,
                "designation": a.designation,
                "theoretical_qty": line.theoretical_qty,
                "counted_qty": line.counted_qty,
                "variance": line.variance,
                "unit_price": _price(a.purchase_price),
            }
            for line, a in rows
        ],
        columns=VARIANCE_COLUMNS[:-1],
    )
    if df.empty:
        return pd.DataFrame(columns=VARIANCE_COLUMNS)

    df["variance_value"] = (df["variance"] * df["unit_price"]).round(2)
    df = df.reindex(df["variance_value"].abs().sort_values(ascending=False, kind="stable").index)
    return df.reset_index(drop=True)[VARIANCE_COLUMNS]


def stock_valuation(db: Session) -> pd.DataFrame:
    articles = db.execute(
        select(Article).where(Article.active.is_(True)).order_by(Article.reference)
    ).scalars().all()

    df = pd.DataFrame(
        [
            {
                "reference": a.reference,
                "designation": a.designation,
                "stock": a.stock,
                "stock_min": a.stock_min,
                "unit_price": _price(a.purchase_price),
            }
            for a in articles
        ],
        columns=VALUATION_COLUMNS[:5],
    )
    if df.empty:
        return pd.DataFrame(columns=VALUATION_COLUMNS)

    df["value"] = (df["stock"].clip(lower=0) * df["unit_price"]).round(2)
    df["below_min"] = (df["stock"] == 0) | (df["stock"] <= df["stock_min"])
    return df[VALUATION_COLUMNS]


def to_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False)


def _recent_count_lines(db: Session) -> pd.DataFrame:
    """Lignes comptées des derniers inventaires clôturés, la plus récente d'abord."""
    session_ids = db.execute(
        select(InventorySession.id)
        .where(InventorySession.status.in_([InventoryStatus.closed, InventoryStatus.validated]))
        .order_by(InventorySession.closed_at.desc(), InventorySession.id.desc())
        .limit(RECENT_SESSIONS)
    ).scalars().all()
    if not session_ids:
        return pd.DataFrame(columns=["article_id", "variance"])

    rows = db.execute(
        select(InventoryLine.article_id, InventoryLine.variance)
        .join(InventorySession, InventorySession.id == InventoryLine.session_id)
        .where(InventoryLine.session_id.in_(session_ids))
        .order_by(InventorySession.closed_at.desc(), InventorySession.id.desc())
    ).all()
    df = pd.DataFrame(
        [{"article_id": r.article_id, "variance": r.variance} for r in rows],
        columns=["article_id", "variance"],
    )
    df["variance"] = pd.to_numeric(df["variance"])
    return df


def stock_anomalies(db: Session) -> pd.DataFrame:
    """
    Anomalies de stock, triées par sévérité (critical, warning, info) :

    - negative_stock     : stock < 0
    - low_stock          : 0 < stock <= stock_min
    - never_inventoried  : absent des derniers inventaires
    - large_variance     : |écart| >= 5 au dernier inventaire (critical à partir de 10)
    - frequent_variance  : |écart| >= 3 sur au moins 3 des derniers inventaires
    """
    articles = db.execute(
        select(Article).where(Article.active.is_(True)).order_by(Article.reference)
    ).scalars().all()
    lines = _recent_count_lines(db)
    by_article = {aid: grp["variance"] for aid, grp in lines.groupby("article_id", sort=False)}

    anomalies = []

    def _add(a: Article, kind: str, severity: str, details: str, value=None) -> None:
        anomalies.append(
            {
                "type": kind,
                "severity": severity,
                "reference": a.reference,
                "designation": a.designation,
                "stock": a.stock,
                "stock_min": a.stock_min,
                "details": details,
                "value": value,
            }
        )

    for a in articles:
        if a.stock < 0:
            _add(a, "negative_stock", "critical", f"Stock négatif : {a.stock}", a.stock)
        if 0 < a.stock <= a.stock_min:
            _add(a, "low_stock", "warning", f"Stock faible : {a.stock} (min : {a.stock_min})", a.stock)

        variances = by_article.get(a.id)
        if variances is None:
            _add(a, "never_inventoried", "info", "Jamais inventorié dans les derniers inventaires")
            continue

        last = variances.iloc[0]
        if pd.notna(last) and abs(last) >= LARGE_VARIANCE:
            last = int(last)
            _add(
                a,
                "large_variance",
                "critical" if abs(last) >= CRITICAL_VARIANCE else "warning",
                f"Écart important au dernier inventaire : {last:+d}",
                last,
            )

        frequent = int((variances.abs() >= FREQUENT_VARIANCE).sum())
        if frequent >= FREQUENT_OCCURRENCES:
            _add(a, "frequent_variance", "warning", f"Écarts fréquents ({frequent} fois)", frequent)

    df = pd.DataFrame(anomalies, columns=ANOMALY_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=ANOMALY_COLUMNS)

    df["value"] = df["value"].astype("Int64")
    rank = df["severity"].map(SEVERITY_ORDER)
    df = df.reindex(rank.sort_values(kind="stable").index)
    return df.reset_index(drop=True)
