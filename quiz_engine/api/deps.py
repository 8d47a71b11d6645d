from fastapi import Depends
from sqlalchemy.orm import Session
from quiz_engine.core.database import get_db
from quiz_engine.services.engine import QuizEngine

def get_engine(db: Session = Depends(get_db)) -> QuizEngine:
    return QuizEngine(db)
