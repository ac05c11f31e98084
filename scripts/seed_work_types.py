"""
Seed the default work types (Transit Standard, Dédouanement Import, ...).

Idempotent: existing work types with the same name are left untouched.

Usage:
    python scripts/seed_work_types.py
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transitflow.db import Base, SessionLocal, engine
from transitflow.models.models import WorkType


DEFAULT_WORK_TYPES = [
    ("Transit Standard", "Service de transit de base."),
    ("Transport Routier", "Acheminement par camion."),
    ("Logistique d'Entreposage", "Stockage et gestion de marchandises."),
    ("Dédouanement Import", "Formalités douanières pour importation."),
    ("Dédouanement Export", "Formalités douanières pour exportation."),
    ("Projet Spécial", "Gestion de projets logistiques complexes."),
]


def seed_work_types() -> int:
    """Insert missing default work types; returns how many were created."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    created = 0
    try:
        existing = {name for (name,) in db.query(WorkType.name).all()}
        for name, description in DEFAULT_WORK_TYPES:
            if name in existing:
                print(f"  = {name} (exists)")
                continue
            db.add(WorkType(name=name, description=description))
            created += 1
            print(f"  + {name}")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    return created


if __name__ == "__main__":
    print("Seeding work types...")
    count = seed_work_types()
    print(f"Done: {count} work type(s) created")
