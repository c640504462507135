"""Expense tracking and per-period deductions"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from crm_billing.api.dependencies import get_request_id, get_team_members
from crm_billing.api.errors import request_failed
from crm_billing.api.v1.schemas import (
    DeductionPeriod,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseUpdate,
)
from crm_billing.domain.fees import validate_member
from crm_billing.domain.models import Expense, ExpenseType
from crm_billing.infrastructure.database.models import ExpenseRecord
from crm_billing.infrastructure.database.repositories import ExpenseRepository, expense_to_domain
from crm_billing.infrastructure.database.session import get_db
from crm_billing.utils.date_utils import is_valid_period
from crm_billing.utils.money import ZERO, round_money

router = APIRouter()


def build_expense_response(record: ExpenseRecord, repo: ExpenseRepository) -> ExpenseResponse:
    expense = expense_to_domain(record)
    return ExpenseResponse(
        id=expense.id,
        name=expense.name,
        amount=round_money(expense.amount),
        type=expense.type,
        date=expense.date,
        category=expense.category,
        paid_by=expense.paid_by,
        is_deducted=expense.is_deducted,
        deduction_periods=[
            DeductionPeriod(month=period.month, year=period.year) for period in repo.deduction_periods(record.id)
        ],
    )


def check_period(month: int, year: int) -> None:
    if not is_valid_period(month, year):
        raise HTTPException(status_code=422, detail=f"Invalid deduction period {month}/{year}")


@router.post("/expenses", response_model=ExpenseResponse, status_code=201)
def create_expense(
    body: ExpenseCreate,
    request: Request,
    db: Session = Depends(get_db),
    team_members: List[str] = Depends(get_team_members),
):
    request_id = get_request_id(request)
    repo = ExpenseRepository(db)
    try:
        validate_member(body.paid_by, team_members)
        record = repo.create_expense(
            Expense(
                name=body.name,
                amount=body.amount,
                type=body.type,
                date=body.date or date.today(),
                category=body.category,
                paid_by=body.paid_by,
                is_deducted=body.is_deducted,
            )
        )
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_expense_response(record, repo)


@router.get("/expenses", response_model=ExpenseListResponse)
def list_expenses(
    search: Optional[str] = Query(None, description="Matches name or category"),
    expense_type: Optional[ExpenseType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    """Filtered expenses with their total"""
    repo = ExpenseRepository(db)
    records = repo.list_expenses(search, expense_type)
    total = sum((expense_to_domain(record).amount for record in records), ZERO)
    return ExpenseListResponse(
        expenses=[build_expense_response(record, repo) for record in records],
        total=round_money(total),
        count=len(records),
    )


@router.patch("/expenses/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: uuid.UUID,
    body: ExpenseUpdate,
    request: Request,
    db: Session = Depends(get_db),
    team_members: List[str] = Depends(get_team_members),
):
    request_id = get_request_id(request)
    repo = ExpenseRepository(db)
    try:
        record = repo.get_expense(expense_id)
        expense = expense_to_domain(record)
        for field_name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(expense, field_name, value)
        validate_member(expense.paid_by, team_members)
        repo.update_expense(record, expense)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_expense_response(record, repo)


@router.delete("/expenses/{expense_id}", status_code=204)
def delete_expense(expense_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    request_id = get_request_id(request)
    try:
        ExpenseRepository(db).delete_expense(expense_id)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e


@router.post("/expenses/{expense_id}/deductions", response_model=ExpenseResponse)
def add_deduction(
    expense_id: uuid.UUID,
    request: Request,
    month: int = Query(...),
    year: int = Query(...),
    db: Session = Depends(get_db),
):
    """Deduct the expense from the dispatch of `month`/`year`; repeating it is harmless"""
    check_period(month, year)
    request_id = get_request_id(request)
    repo = ExpenseRepository(db)
    try:
        record = repo.get_expense(expense_id)
        repo.add_deduction(record.id, month, year)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_expense_response(record, repo)


@router.delete("/expenses/{expense_id}/deductions", response_model=ExpenseResponse)
def remove_deduction(
    expense_id: uuid.UUID,
    request: Request,
    month: int = Query(...),
    year: int = Query(...),
    db: Session = Depends(get_db),
):
    check_period(month, year)
    request_id = get_request_id(request)
    repo = ExpenseRepository(db)
    try:
        record = repo.get_expense(expense_id)
        repo.remove_deduction(record.id, month, year)
        db.commit()
    except Exception as e:
        raise request_failed(db, request_id, e) from e
    return build_expense_response(record, repo)
