from fastapi import FastAPI, Depends, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import uvicorn
from datetime import datetime
import os
import logging
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

from services.analysis_service import AnalysisService
from services.budget_service import BudgetService
from services.recurring_service import RecurringService
from services.errors import SmartWalletError
from database.database import init_db, get_db
from database.models import UserModel
from database import crud
from models.user import User, UserCreate
from models.category import Category, CategoryCreate, CategoryType
from models.transaction import Transaction, TransactionCreate, TransactionUpdate, TransactionType
from models.budget import Budget, BudgetCreate, BudgetUpdate, BudgetWithStatus, BudgetAlert
from models.recurring import Recurring, RecurringCreate, RecurringUpdate

app = FastAPI(title="SmartWallet API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize database
init_db()

# Initialize services
analysis_service = AnalysisService()
budget_service = BudgetService()
recurring_service = RecurringService()

def get_current_user(
    x_user_id: int = Header(..., description="Id of the calling user"),
    db: Session = Depends(get_db)
) -> UserModel:
    user = crud.get_user(db, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user

def _transaction(transaction) -> dict:
    return Transaction.model_validate(transaction).model_dump(mode="json")

def _recurring(recurring) -> dict:
    return Recurring.model_validate(recurring).model_dump(mode="json")

def _budget_with_status(budget, status: dict) -> dict:
    return BudgetWithStatus(
        **Budget.model_validate(budget).model_dump(),
        **status
    ).model_dump(mode="json")

def _server_error(action: str, error: Exception) -> HTTPException:
    logger.error(f"{action} error: {str(error)}")
    return HTTPException(status_code=500, detail="Internal server error.")

@app.get("/")
async def root():
    return {
        "message": "SmartWallet API is running!",
        "version": "1.0.0",
        "endpoints": {
            "users": "/api/users",
            "categories": "/api/categories",
            "transactions": "/api/transactions",
            "budgets": "/api/budgets",
            "recurring": "/api/recurring"
        }
    }

# User endpoints
@app.post("/api/users")
def create_user_endpoint(user: UserCreate, db: Session = Depends(get_db)):
    """
    Register a user
    """
    try:
        if crud.get_user_by_email(db, user.email):
            raise HTTPException(status_code=409, detail="Email already registered")
        db_user = crud.create_user(db, user)
        return JSONResponse(status_code=201, content={
            "success": True,
            "user": User.model_validate(db_user).model_dump(mode="json")
        })
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Create user", e)

# Category endpoints
@app.get("/api/categories")
def get_categories_endpoint(type: Optional[CategoryType] = None, db: Session = Depends(get_db)):
    """
    All categories, optionally filtered by type
    """
    try:
        categories = crud.get_categories(db, type)
        return JSONResponse({
            "success": True,
            "categories": [Category.model_validate(c).model_dump(mode="json") for c in categories]
        })
    except Exception as e:
        raise _server_error("Get categories", e)

@app.post("/api/categories")
def create_category_endpoint(category: CategoryCreate, db: Session = Depends(get_db)):
    """
    Create a category (names are unique)
    """
    try:
        if crud.get_category_by_name(db, category.name):
            raise HTTPException(status_code=400, detail="A category with this name already exists.")
        db_category = crud.create_category(db, category)
        return JSONResponse(status_code=201, content={
            "success": True,
            "category": Category.model_validate(db_category).model_dump(mode="json")
        })
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Create category", e)

@app.post("/api/categories/seed")
def seed_categories_endpoint(db: Session = Depends(get_db)):
    """
    Insert the default categories that are missing
    """
    try:
        created = crud.seed_categories(db)
        return JSONResponse({
            "success": True,
            "message": f"Seeded {len(created)} new categories.",
            "categories": [Category.model_validate(c).model_dump(mode="json") for c in created]
        })
    except Exception as e:
        raise _server_error("Seed categories", e)

# Transaction endpoints
@app.get("/api/transactions")
def get_transactions_endpoint(
    type: Optional[TransactionType] = None,
    category_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    The user's transactions, newest first
    """
    try:
        transactions = crud.get_transactions(db, current_user.id, type, category_id, start_date, end_date)
        return JSONResponse({
            "success": True,
            "transactions": [_transaction(t) for t in transactions]
        })
    except Exception as e:
        raise _server_error("Get transactions", e)

@app.get("/api/transactions/summary")
def get_summary_endpoint(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Totals of income and expenses, balance, expenses per category
    """
    try:
        transactions = crud.get_transactions(db, current_user.id)
        return JSONResponse({
            "success": True,
            "summary": analysis_service.summarize(transactions)
        })
    except Exception as e:
        raise _server_error("Get summary", e)

@app.get("/api/transactions/{transaction_id}")
def get_transaction_endpoint(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        transaction = crud.get_transaction(db, transaction_id, current_user.id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found.")
        return JSONResponse({"success": True, "transaction": _transaction(transaction)})
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Get transaction", e)

@app.post("/api/transactions")
def create_transaction_endpoint(
    transaction: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Create a transaction; the date defaults to now
    """
    try:
        if not crud.find_category(db, transaction.category_id):
            raise HTTPException(status_code=400, detail="Invalid category.")
        transaction_db = crud.create_transaction(db, current_user.id, transaction)
        return JSONResponse(status_code=201, content={
            "success": True,
            "transaction": _transaction(transaction_db)
        })
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Create transaction", e)

@app.put("/api/transactions/{transaction_id}")
def update_transaction_endpoint(
    transaction_id: int,
    update: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        transaction = crud.get_transaction(db, transaction_id, current_user.id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found.")

        fields = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None or k == "description"}
        if "category_id" in fields and not crud.find_category(db, fields["category_id"]):
            raise HTTPException(status_code=400, detail="Invalid category.")

        updated = crud.update_transaction(db, transaction, fields)
        return JSONResponse({"success": True, "transaction": _transaction(updated)})
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Update transaction", e)

@app.delete("/api/transactions/{transaction_id}")
def delete_transaction_endpoint(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        transaction = crud.get_transaction(db, transaction_id, current_user.id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found.")
        crud.delete_transaction(db, transaction)
        return JSONResponse({"success": True, "message": "Transaction deleted successfully."})
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("Delete transaction", e)

# Budget endpoints
@app.get("/api/budgets")
def get_budgets_endpoint(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    All budgets with their spending in the current period
    """
    try:
        entries = budget_service.list_with_status(db, current_user.id)
        return JSONResponse({
            "success": True,
            "budgets": [_budget_with_status(entry.pop("budget"), entry) for entry in entries]
        })
    except Exception as e:
        raise _server_error("Get budgets", e)

@app.get("/api/budgets/alerts")
def get_alerts_endpoint(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Only the budgets in warning or exceeded state
    """
    try:
        alerts = budget_service.list_alerts(db, current_user.id)
        return JSONResponse({
            "success": True,
            "alerts": [BudgetAlert(**a).model_dump(mode="json") for a in alerts]
        })
    except Exception as e:
        raise _server_error("Get alerts", e)

@app.get("/api/budgets/{budget_id}")
def get_budget_endpoint(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        budget = budget_service.get_budget(db, budget_id, current_user.id)
        status = budget_service.compute_status(db, budget)
        return JSONResponse({"success": True, "budget": _budget_with_status(budget, status)})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Get budget", e)

@app.post("/api/budgets")
def create_budget_endpoint(
    budget: BudgetCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Create a budget for an expense category
    """
    try:
        db_budget = budget_service.create_budget(db, current_user.id, budget)
        return JSONResponse(status_code=201, content={
            "success": True,
            "budget": Budget.model_validate(db_budget).model_dump(mode="json")
        })
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Create budget", e)

@app.put("/api/budgets/{budget_id}")
def update_budget_endpoint(
    budget_id: int,
    budget_update: BudgetUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        updated_budget = budget_service.update_budget(db, budget_id, current_user.id, budget_update)
        return JSONResponse({
            "success": True,
            "budget": Budget.model_validate(updated_budget).model_dump(mode="json")
        })
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Update budget", e)

@app.delete("/api/budgets/{budget_id}")
def delete_budget_endpoint(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        budget_service.delete_budget(db, budget_id, current_user.id)
        return JSONResponse({"success": True, "message": "Budget deleted successfully."})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Delete budget", e)

# Recurring transaction endpoints
@app.get("/api/recurring")
def get_recurring_endpoint(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        rules = crud.get_all_recurring(db, current_user.id)
        return JSONResponse({"success": True, "recurring": [_recurring(r) for r in rules]})
    except Exception as e:
        raise _server_error("Get recurring", e)

@app.get("/api/recurring/upcoming")
def get_upcoming_endpoint(
    days: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Active recurring transactions due within the next days
    """
    try:
        rules = recurring_service.get_upcoming(db, current_user.id, days=days)
        return JSONResponse({"success": True, "recurring": [_recurring(r) for r in rules]})
    except Exception as e:
        raise _server_error("Get upcoming", e)

@app.post("/api/recurring/process")
def process_recurring_endpoint(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Generate the transactions of every due recurring rule
    """
    try:
        result = recurring_service.process_due(db, current_user.id)
        transactions = result["generated_transactions"]
        return JSONResponse({
            "success": True,
            "message": f"Processed {result['processed_count']} recurring transactions.",
            "processed_count": result["processed_count"],
            "generated_count": len(transactions),
            "transactions": [_transaction(t) for t in transactions],
            "failures": result["failures"]
        })
    except Exception as e:
        raise _server_error("Process recurring", e)

@app.get("/api/recurring/{recurring_id}")
def get_recurring_rule_endpoint(
    recurring_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        rule = recurring_service.get_rule(db, recurring_id, current_user.id)
        return JSONResponse({"success": True, "recurring": _recurring(rule)})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Get recurring", e)

@app.post("/api/recurring")
def create_recurring_endpoint(
    recurring: RecurringCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Create a recurring transaction; its first occurrence is the start date
    """
    try:
        rule = recurring_service.create_rule(db, current_user.id, recurring)
        return JSONResponse(status_code=201, content={"success": True, "recurring": _recurring(rule)})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Create recurring", e)

@app.put("/api/recurring/{recurring_id}")
def update_recurring_endpoint(
    recurring_id: int,
    update: RecurringUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        rule = recurring_service.update_rule(db, recurring_id, current_user.id, update)
        return JSONResponse({"success": True, "recurring": _recurring(rule)})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Update recurring", e)

@app.delete("/api/recurring/{recurring_id}")
def delete_recurring_endpoint(
    recurring_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    try:
        recurring_service.delete_rule(db, recurring_id, current_user.id)
        return JSONResponse({"success": True, "message": "Recurring transaction deleted successfully."})
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Delete recurring", e)

@app.post("/api/recurring/{recurring_id}/skip")
def skip_recurring_endpoint(
    recurring_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    """
    Skip the next occurrence without generating a transaction
    """
    try:
        rule = recurring_service.skip_next(db, recurring_id, current_user.id)
        return JSONResponse({
            "success": True,
            "message": "Skipped next occurrence.",
            "recurring": _recurring(rule)
        })
    except SmartWalletError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error("Skip recurring", e)

if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
