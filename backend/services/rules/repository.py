# services/rules/repository.py

from typing import Any, Iterable

from sqlalchemy.orm import Session

from models.rules import RuleRecord
from services.rules.engine import Condition, Rule


def _conditions_payload(conditions: Iterable[Any]) -> list[dict]:
    out = []
    for item in conditions or ():
        condition = item if isinstance(item, Condition) else Condition.from_dict(item)
        out.append(condition.to_dict())
    return out


def to_rule(record: RuleRecord) -> Rule:
    return Rule(
        id=record.id,
        name=record.name,
        is_active=bool(record.is_active),
        conditions=tuple(Condition.from_dict(c) for c in record.conditions or ()),
    )


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "is_active": rule.is_active,
        "conditions": [c.to_dict() for c in rule.conditions],
    }


def list_rules(db: Session) -> list[Rule]:
    records = db.query(RuleRecord).order_by(RuleRecord.id.asc()).all()
    return [to_rule(r) for r in records]


def list_active_rules(db: Session) -> list[Rule]:
    records = (
        db.query(RuleRecord)
        .filter(RuleRecord.is_active.is_(True))
        .order_by(RuleRecord.id.asc())
        .all()
    )
    return [to_rule(r) for r in records]


def get_rules_by_ids(db: Session, rule_ids: Iterable[int]) -> list[Rule]:
    ids = list(rule_ids)
    if not ids:
        return []
    records = db.query(RuleRecord).filter(RuleRecord.id.in_(ids)).order_by(RuleRecord.id.asc()).all()
    return [to_rule(r) for r in records]


def get_rule(db: Session, rule_id: int) -> RuleRecord | None:
    return db.query(RuleRecord).filter(RuleRecord.id == rule_id).first()


def create_rule(db: Session, name: str, conditions: Iterable[Any], is_active: bool = True) -> Rule:
    record = RuleRecord(
        name=name.strip(),
        is_active=is_active,
        conditions=_conditions_payload(conditions),
    )
    db.add(record)
    db.flush()
    return to_rule(record)


def update_rule(
    db: Session,
    rule_id: int,
    name: str | None = None,
    conditions: Iterable[Any] | None = None,
    is_active: bool | None = None,
) -> Rule | None:
    record = get_rule(db, rule_id)
    if record is None:
        return None
    if name is not None:
        record.name = name.strip()
    if conditions is not None:
        record.conditions = _conditions_payload(conditions)
    if is_active is not None:
        record.is_active = is_active
    db.flush()
    return to_rule(record)


def delete_rule(db: Session, rule_id: int) -> bool:
    deleted = db.query(RuleRecord).filter(RuleRecord.id == rule_id).delete(synchronize_session=False)
    return bool(deleted)
