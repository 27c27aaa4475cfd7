# routers/rules.py

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db.deps import get_db
from models.schemas import RuleCreateRequest, RuleEvaluateRequest, RuleUpdateRequest
from services.rules import repository
from services.rules.engine import CANONICAL_OPERATORS, evaluate_conditions

router = APIRouter(prefix="/api/rules", tags=["rules"])


def _not_found(rule_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Rule {rule_id} not found")


@router.get("")
def list_rules(db: Session = Depends(get_db)):
    return {"rules": [repository.rule_to_dict(r) for r in repository.list_rules(db)]}


@router.get("/active")
def list_active_rules(db: Session = Depends(get_db)):
    return {"rules": [repository.rule_to_dict(r) for r in repository.list_active_rules(db)]}


@router.get("/operators")
def list_operators():
    return {"operators": list(CANONICAL_OPERATORS)}


@router.post("")
def create_rule(payload: RuleCreateRequest, db: Session = Depends(get_db)):
    rule = repository.create_rule(
        db,
        name=payload.name,
        conditions=[c.model_dump() for c in payload.conditions],
        is_active=payload.is_active,
    )
    db.commit()
    return repository.rule_to_dict(rule)


@router.put("/{rule_id}")
def update_rule(rule_id: int, payload: RuleUpdateRequest, db: Session = Depends(get_db)):
    rule = repository.update_rule(
        db,
        rule_id,
        name=payload.name,
        conditions=None if payload.conditions is None else [c.model_dump() for c in payload.conditions],
        is_active=payload.is_active,
    )
    if rule is None:
        raise _not_found(rule_id)
    db.commit()
    return repository.rule_to_dict(rule)


@router.post("/{rule_id}/toggle")
def toggle_rule(rule_id: int, db: Session = Depends(get_db)):
    record = repository.get_rule(db, rule_id)
    if record is None:
        raise _not_found(rule_id)
    rule = repository.update_rule(db, rule_id, is_active=not record.is_active)
    db.commit()
    return repository.rule_to_dict(rule)


@router.delete("/{rule_id}")
def delete_rule(rule_id: int, db: Session = Depends(get_db)):
    if not repository.delete_rule(db, rule_id):
        raise _not_found(rule_id)
    db.commit()
    return {"deleted": rule_id}


@router.post("/evaluate")
def evaluate(payload: RuleEvaluateRequest):
    conditions = [c.model_dump() for c in payload.conditions]
    return {"matched": evaluate_conditions(payload.row, conditions)}
