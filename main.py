import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import SessionLocal
from dates import coerce_calendar_date, local_today
from errors import FinanceError, InvalidToken, PartialMaterialization
from models import CategoryType, ExpenseStatus, Frequency, User
from periods import Period, resolve_period
from schemas import (
    AccountIn,
    AccountOut,
    AccountUpdateIn,
    CategoryIn,
    CategoryOut,
    CategoryTreeOut,
    CategoryUpdateIn,
    ChangePasswordIn,
    CollectorIn,
    CollectorOut,
    CollectorUpdateIn,
    DeleteAccountIn,
    ExpenseBatchIn,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdateIn,
    IncomeBatchIn,
    IncomeIn,
    IncomeOut,
    IncomeUpdateIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    UserOut,
)
from services import (
    AccountService,
    AuthService,
    CategoryService,
    CollectorService,
    DashboardService,
    EntryFilters,
    ExpenseService,
    IncomeService,
    Page,
)
from tokens import verify_token

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Fianzas Manager")


@app.on_event("startup")
def startup_event():
    logger.info(f"startup: utc_offset_hours={settings.utc_offset_hours}")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise InvalidToken("Se requiere autenticación")
    payload = verify_token(credentials.credentials)
    return AuthService(db).get_user(payload["uid"])


def ok(data=None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def dump(schema, obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def dump_many(schema, objs) -> list[dict]:
    return [dump(schema, obj) for obj in objs]


def paginated(schema, page: Page) -> JSONResponse:
    return ok(
        {
            "items": dump_many(schema, page.items),
            "pagination": {
                "page": page.page,
                "limit": page.limit,
                "total": page.total,
                "pages": page.pages,
            },
        }
    )


def _error(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    body = {"success": False, "error": message, "code": code}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    logger.info(
        f"request_rejected: path={request.url.path} code={exc.code} "
        f"message={exc.message}"
    )
    return _error(exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return _error(400, "Error de validación", "VALIDATION_ERROR", details=details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), "HTTP_ERROR")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    return _error(500, "Error interno del servidor", "INTERNAL_ERROR")


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _optional_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return coerce_calendar_date(value)


def filters_from_request(request: Request) -> EntryFilters:
    params = request.query_params
    try:
        category_id = int(params["category_id"]) if params.get("category_id") else None
        frequency = Frequency(params["frequency"]) if params.get("frequency") else None
        status = ExpenseStatus(params["status"]) if params.get("status") else None
        collector_id = (
            int(params["collector_id"]) if params.get("collector_id") else None
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return EntryFilters(
        category_id=category_id,
        frequency=frequency,
        status=status,
        collector_id=collector_id,
        date_from=_optional_date(params.get("date_from")),
        date_to=_optional_date(params.get("date_to")),
        query=params.get("q") or None,
    )


def _materialized(schema, records, exc: PartialMaterialization) -> JSONResponse:
    logger.warning(f"batch_partial: {exc.summary} reason={exc.reason}")
    return JSONResponse(
        status_code=207,
        content=jsonable_encoder(
            {
                "success": False,
                "error": exc.message,
                "code": exc.code,
                "data": dump_many(schema, records),
                "summary": {
                    "created": exc.succeeded,
                    "total": exc.total,
                    "failed_at": exc.failed_at,
                },
            }
        ),
    )


@app.get("/api/health")
def health():
    return ok({"status": "ok", "today": local_today().isoformat()})


# Auth


@app.post("/api/auth/register")
def register(data: RegisterIn, db: Session = Depends(get_db)):
    user, token = AuthService(db).register(data)
    return ok(
        {"user": dump(UserOut, user), "token": token},
        "Usuario registrado exitosamente",
        status_code=201,
    )


@app.post("/api/auth/login")
def login(data: LoginIn, db: Session = Depends(get_db)):
    user, token = AuthService(db).login(data)
    return ok({"user": dump(UserOut, user), "token": token}, "Inicio de sesión exitoso")


@app.get("/api/auth/me")
def me(user: User = Depends(get_current_user)):
    return ok(dump(UserOut, user))


@app.put("/api/auth/me")
def update_me(
    data: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = AuthService(db).update_profile(user.id, data)
    return ok(dump(UserOut, updated), "Perfil actualizado")


@app.post("/api/auth/change-password")
def change_password(
    data: ChangePasswordIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthService(db).change_password(user.id, data)
    return ok(None, "Contraseña actualizada")


@app.post("/api/auth/refresh")
def refresh(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok({"token": AuthService(db).refresh_token(user.id)})


@app.post("/api/auth/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy.
    logger.info(f"logout: user_id={user.id}")
    return ok(None, "Sesión cerrada")


@app.delete("/api/auth/account")
def delete_account(
    data: DeleteAccountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthService(db).delete_account(user.id, data.password)
    return ok(None, "Cuenta eliminada")


# Categories


@app.get("/api/categories")
def list_categories(
    type: Optional[CategoryType] = None,
    include_global: bool = True,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = CategoryService(db, user.id).list(
        type, include_global=include_global, page=page, limit=limit
    )
    return paginated(CategoryOut, result)


@app.get("/api/categories/search")
def search_categories(
    q: str = Query(..., min_length=1),
    type: Optional[CategoryType] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(dump_many(CategoryOut, CategoryService(db, user.id).search(q, type)))


def _tree(node: dict) -> dict:
    out = CategoryOut.model_validate(node["category"]).model_dump()
    out["children"] = [_tree(child) for child in node["children"]]
    return out


@app.get("/api/categories/hierarchy")
def category_hierarchy(
    type: Optional[CategoryType] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    nodes = CategoryService(db, user.id).hierarchy(type)
    return ok(
        [
            CategoryTreeOut.model_validate(_tree(node)).model_dump(mode="json")
            for node in nodes
        ]
    )


@app.get("/api/categories/{category_id}")
def get_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(dump(CategoryOut, CategoryService(db, user.id).get(category_id)))


@app.get("/api/categories/{category_id}/usage")
def category_usage(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(CategoryService(db, user.id).usage(category_id))


@app.get("/api/categories/{category_id}/dependencies")
def category_dependencies(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(CategoryService(db, user.id).dependencies(category_id))


@app.post("/api/categories")
def create_category(
    data: CategoryIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category = CategoryService(db, user.id).create(data)
    return ok(dump(CategoryOut, category), "Categoría creada", status_code=201)


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int,
    data: CategoryUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category = CategoryService(db, user.id).update(category_id, data)
    return ok(dump(CategoryOut, category), "Categoría actualizada")


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    CategoryService(db, user.id).delete(category_id)
    return ok(None, "Categoría eliminada")


# Incomes and expenses share their route shapes.


def _entry_routes(prefix: str, service_cls, schema_out, schema_in, batch_in, update_in):
    @app.get(f"/api/{prefix}", name=f"list_{prefix}")
    def list_entries(
        request: Request,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        sort: str = Query("date", pattern="^(date|amount|description|created_at)$"),
        order: str = Query("desc", pattern="^(asc|desc)$"),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        filters = filters_from_request(request)
        result = service_cls(db, user.id).list(
            filters, page=page, limit=limit, sort=sort, order=order
        )
        return paginated(schema_out, result)

    @app.get(f"/api/{prefix}/search", name=f"search_{prefix}")
    def search_entries(
        q: str = Query(..., min_length=1),
        limit: int = Query(20, ge=1, le=100),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return ok(dump_many(schema_out, service_cls(db, user.id).search(q, limit)))

    @app.get(f"/api/{prefix}/aggregate", name=f"aggregate_{prefix}")
    def aggregate_entries(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return ok(service_cls(db, user.id).aggregate(filters_from_request(request)))

    @app.get(f"/api/{prefix}/count", name=f"count_{prefix}")
    def count_entries(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return ok({"count": service_cls(db, user.id).count(filters_from_request(request))})

    @app.get(f"/api/{prefix}/dashboard/current-month", name=f"current_month_{prefix}")
    def current_month_entries(
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return ok(dump_many(schema_out, service_cls(db, user.id).current_month()))

    @app.get(f"/api/{prefix}/{{entry_id}}", name=f"get_{prefix}")
    def get_entry(
        entry_id: int,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return ok(dump(schema_out, service_cls(db, user.id).get(entry_id)))

    @app.post(f"/api/{prefix}", name=f"create_{prefix}")
    def create_entry(
        data: schema_in,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        record = service_cls(db, user.id).create(data)
        return ok(dump(schema_out, record), "Registro creado", status_code=201)

    @app.post(f"/api/{prefix}/batch", name=f"batch_{prefix}")
    def create_entries(
        data: batch_in,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        try:
            records = service_cls(db, user.id).create_recurring(data)
        except PartialMaterialization as exc:
            return _materialized(schema_out, exc.records, exc)
        return ok(
            dump_many(schema_out, records),
            f"Se crearon {len(records)} registros",
            status_code=201,
        )

    @app.put(f"/api/{prefix}/{{entry_id}}", name=f"update_{prefix}")
    def update_entry(
        entry_id: int,
        data: update_in,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        record = service_cls(db, user.id).update(entry_id, data)
        return ok(dump(schema_out, record), "Registro actualizado")

    @app.delete(f"/api/{prefix}/{{entry_id}}", name=f"delete_{prefix}")
    def delete_entry(
        entry_id: int,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        service_cls(db, user.id).delete(entry_id)
        return ok(None, "Registro eliminado")


@app.get("/api/expenses/upcoming")
def upcoming_expenses(
    days: int = Query(7, ge=0, le=365),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(dump_many(ExpenseOut, ExpenseService(db, user.id).upcoming(days)))


@app.get("/api/expenses/overdue")
def overdue_expenses(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(dump_many(ExpenseOut, ExpenseService(db, user.id).overdue()))


_entry_routes("incomes", IncomeService, IncomeOut, IncomeIn, IncomeBatchIn, IncomeUpdateIn)
_entry_routes(
    "expenses", ExpenseService, ExpenseOut, ExpenseIn, ExpenseBatchIn, ExpenseUpdateIn
)


# Accounts


@app.get("/api/accounts")
def list_accounts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(dump_many(AccountOut, AccountService(db, user.id).list_all()))


@app.get("/api/accounts/{account_id}")
def get_account(
    account_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(dump(AccountOut, AccountService(db, user.id).get(account_id)))


@app.post("/api/accounts")
def create_account(
    data: AccountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = AccountService(db, user.id).create(data)
    return ok(dump(AccountOut, account), "Cuenta creada", status_code=201)


@app.put("/api/accounts/{account_id}")
def update_account(
    account_id: int,
    data: AccountUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = AccountService(db, user.id).update(account_id, data)
    return ok(dump(AccountOut, account), "Cuenta actualizada")


@app.delete("/api/accounts/{account_id}")
def delete_account_entry(
    account_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AccountService(db, user.id).delete(account_id)
    return ok(None, "Cuenta eliminada")


# Collectors


@app.get("/api/collectors")
def list_collectors(
    include_expense_count: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CollectorService(db, user.id)
    collectors = dump_many(CollectorOut, service.list_all())
    if include_expense_count:
        counts = service.expense_counts()
        for item in collectors:
            item["expense_count"] = counts.get(item["id"], 0)
    return ok(collectors)


@app.get("/api/collectors/{collector_id}")
def get_collector(
    collector_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CollectorService(db, user.id)
    item = dump(CollectorOut, service.get(collector_id))
    item["expense_count"] = service.count_expenses(collector_id)
    return ok(item)


@app.post("/api/collectors")
def create_collector(
    data: CollectorIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    collector = CollectorService(db, user.id).create(data)
    return ok(dump(CollectorOut, collector), "Cobrador creado", status_code=201)


@app.put("/api/collectors/{collector_id}")
def update_collector(
    collector_id: int,
    data: CollectorUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    collector = CollectorService(db, user.id).update(collector_id, data)
    return ok(dump(CollectorOut, collector), "Cobrador actualizado")


@app.delete("/api/collectors/{collector_id}")
def delete_collector(
    collector_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    CollectorService(db, user.id).delete(collector_id)
    return ok(None, "Cobrador eliminado")


# Dashboard


@app.get("/api/dashboard/summary")
def dashboard_summary(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    return ok(DashboardService(db, user.id).summary(period))


@app.get("/api/dashboard/calendar")
def dashboard_calendar(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    today = local_today()
    days = DashboardService(db, user.id).due_calendar(
        year or today.year, month or today.month
    )
    return ok(
        [
            {
                "date": day.day.isoformat(),
                "total": day.total,
                "expenses": dump_many(ExpenseOut, day.expenses),
            }
            for day in days
        ]
    )
