from fastapi import HTTPException
from sqlalchemy.orm import Session


def get_owned_or_404(db: Session, model, tenant_id: int, obj_id: int, label: str):
    obj = db.query(model).filter(model.id == obj_id, model.tenant_id == tenant_id).first()
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj


def apply_updates(obj, payload) -> None:
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(obj, key, value)
