"""FastAPI-based web interface for the order flow tracker."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from ..config import load_settings
from ..domain import AREA_SEQUENCE, ErrorCategory, StatusMapping
from ..product_types import ProductTypeRule
from ..exceptions import (
    NotFound,
    OrderFlowError,
    PreconditionBlocked,
    ValidationFailure,
)
from ..logger import get_logger
from ..sample_usage import DEFAULT_PRODUCT_TYPE_RULES, DEFAULT_STATUS_MAPPINGS, demo_upload_rows
from ..services import OrderFlowService
from ..storage import OrderFlowDatabase

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

log = get_logger("web")

STATUS_CODES = {
    NotFound: 404,
    ValidationFailure: 422,
    PreconditionBlocked: 409,
}


class MoveRequest(BaseModel):
    order_id: str
    target_area: str
    justification: Optional[str] = None
    actor: Optional[str] = None
    blocked_reason: Optional[str] = None


class ActorRequest(BaseModel):
    actor: Optional[str] = None


class StatusMappingPayload(BaseModel):
    id: str
    status_value: str
    area: str
    label: str
    sort_order: int
    is_active: bool = True


class ProductTypeRulePayload(BaseModel):
    rule_type: str
    rule_value: str
    product_type: str
    priority: int = 100
    is_active: bool = True
    note: Optional[str] = None
    id: Optional[str] = None


class UploadRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class IssueCreateRequest(BaseModel):
    pn: str
    issue_type: str
    comment: str = ""
    actor: Optional[str] = None


class IssuePatchRequest(BaseModel):
    status: Optional[str] = None
    comment: Optional[str] = None
    actor: Optional[str] = None


class ProductionStatusRequest(BaseModel):
    status: str
    actor: Optional[str] = None


class LogisticsStatusRequest(BaseModel):
    received_from_production: Optional[bool] = None
    delivered: Optional[bool] = None
    actor: Optional[str] = None


def ensure_demo_data(service: OrderFlowService) -> None:
    if len(service.status_mappings) or len(service.orders):
        return
    service.update_status_mappings(DEFAULT_STATUS_MAPPINGS)
    service.update_product_type_rules(DEFAULT_PRODUCT_TYPE_RULES)
    service.ingest_orders(demo_upload_rows())
    log.info("Demo data loaded: %s orders", len(service.orders))


def create_app(database_path: Optional[str] = None, *, demo_data: Optional[bool] = None) -> FastAPI:
    settings = load_settings()
    database = OrderFlowDatabase(database_path or settings.database_path)
    service = OrderFlowService.from_database(database, settings=settings)
    if demo_data is None:
        demo_data = settings.is_demo
    if demo_data:
        ensure_demo_data(service)

    app = FastAPI(title="Order Flow Tracker")
    app.state.order_flow_service = service
    app.state.database = database

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        database.close()

    @app.exception_handler(OrderFlowError)
    async def order_flow_error_handler(request: Request, exc: OrderFlowError):
        status_code = next(
            (code for kind, code in STATUS_CODES.items() if isinstance(exc, kind)), 400
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.code, "detail": str(exc)},
        )

    @app.get("/")
    async def dashboard(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        summary = service.area_summary()
        columns = [
            {
                "area": area,
                "mode": service.area_modes.mode_for(area),
                "labels": sorted(summary[area].items()),
                "total": sum(summary[area].values()),
            }
            for area in AREA_SEQUENCE
        ]
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "columns": columns,
                "error_counts": service.flow_error_summary(),
                "discrepancies": service.flow_errors(
                    category=ErrorCategory.E1_DISCREPANCY
                ),
            },
        )

    # ------------------------------------------------------------------
    # Orders and moves
    # ------------------------------------------------------------------
    @app.get("/api/orders")
    async def list_orders(
        request: Request,
        area: Optional[str] = None,
        status: Optional[str] = None,
        q: Optional[str] = None,
        plant: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        product_type: Optional[str] = None,
    ):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.list_orders(
            area=area,
            status=status,
            q=q,
            plant=plant,
            date_from=date_from,
            date_to=date_to,
            product_type=product_type,
        )

    @app.get("/api/orders/{order_id}")
    async def get_order(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.get_order(order_id)

    @app.get("/api/orders/{order_id}/product-type")
    async def product_type(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return {"order_id": order_id, "product_type": service.product_type_for(order_id)}

    @app.get("/api/orders/{order_id}/moves")
    async def move_history(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.move_history(order_id)

    @app.post("/api/orders/move")
    async def move_order(payload: MoveRequest, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.move_order(
            payload.order_id,
            payload.target_area,
            payload.justification,
            actor=payload.actor,
            blocked_reason=payload.blocked_reason,
        )

    @app.post("/api/orders/{order_id}/mark-ready")
    async def mark_ready(
        order_id: str, request: Request, payload: Optional[ActorRequest] = None
    ):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.mark_order_ready(order_id, actor=payload.actor if payload else None)

    @app.get("/api/plants")
    async def plants(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.unique_plants()

    @app.get("/api/summary")
    async def summary(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.area_summary()

    # ------------------------------------------------------------------
    # Configuration documents
    # ------------------------------------------------------------------
    @app.get("/api/admin/status-mapping")
    async def get_status_mappings(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.status_mappings.list()

    @app.put("/api/admin/status-mapping")
    async def put_status_mappings(payload: List[StatusMappingPayload], request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        mappings = [StatusMapping(**row.model_dump()) for row in payload]
        service.update_status_mappings(mappings)
        return service.status_mappings.list()

    @app.get("/api/admin/area-modes")
    async def get_area_modes(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.get_area_modes()

    @app.put("/api/admin/area-modes")
    async def put_area_modes(payload: Dict[str, str], request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.set_area_modes(payload)

    @app.get("/api/admin/product-type-rules")
    async def get_product_type_rules(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.get_product_type_rules()

    @app.put("/api/admin/product-type-rules")
    async def put_product_type_rules(payload: List[ProductTypeRulePayload], request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        rules = [ProductTypeRule(**row.model_dump()) for row in payload]
        return service.update_product_type_rules(rules)

    @app.post("/api/uploads/orders")
    async def upload_orders(payload: UploadRequest, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.ingest_orders(payload.rows)

    # ------------------------------------------------------------------
    # Issues, production and logistics
    # ------------------------------------------------------------------
    @app.get("/api/orders/{order_id}/issues")
    async def list_issues(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        service.get_order(order_id)
        return service.issues_for_order(order_id)

    @app.post("/api/orders/{order_id}/issues")
    async def create_issue(order_id: str, payload: IssueCreateRequest, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.create_issue(
            order_id,
            payload.pn,
            payload.issue_type,
            payload.comment,
            actor=payload.actor,
        )

    @app.patch("/api/issues/{issue_id}")
    async def patch_issue(issue_id: str, payload: IssuePatchRequest, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.update_issue(
            issue_id,
            status=payload.status,
            comment=payload.comment,
            actor=payload.actor,
        )

    @app.get("/api/issues/{issue_id}/history")
    async def issue_history(issue_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.issue_history_for(issue_id)

    @app.get("/api/orders/{order_id}/production-status")
    async def get_production_status(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        service.get_order(order_id)
        return service.get_production_status(order_id)

    @app.put("/api/orders/{order_id}/production-status")
    async def put_production_status(
        order_id: str, payload: ProductionStatusRequest, request: Request
    ):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.set_production_status(order_id, payload.status, actor=payload.actor)

    @app.get("/api/orders/{order_id}/logistics-status")
    async def get_logistics_status(order_id: str, request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        service.get_order(order_id)
        return service.get_logistics_status(order_id)

    @app.put("/api/orders/{order_id}/logistics-status")
    async def put_logistics_status(
        order_id: str, payload: LogisticsStatusRequest, request: Request
    ):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.update_logistics_status(
            order_id,
            received_from_production=payload.received_from_production,
            delivered=payload.delivered,
            actor=payload.actor,
        )

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------
    @app.get("/api/errors")
    async def flow_errors(request: Request, category: Optional[str] = None, q: str = ""):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.flow_errors(category=category, q=q)

    @app.get("/api/errors/summary")
    async def flow_error_summary(request: Request):
        service: OrderFlowService = request.app.state.order_flow_service
        return service.flow_error_summary()

    return app


__all__ = ["create_app", "ensure_demo_data"]
