"""Order submission, deletion and status endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_admin_context, get_auth_context
from routers.rate_limit import client_identifier, rate_limit
from services.audit_log import record_audit_event
from services.cleanup_queue import dispatch_file_cleanup
from services.order_status import update_order_status
from services.orders import delete_order, get_user_order, list_user_orders, submit_order

router = APIRouter()
logger = logging.getLogger(__name__)


class UploadedFile(BaseModel):
    name: str = Field(min_length=1, max_length=500)
    url: str = Field(min_length=1, max_length=2000)


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1, max_length=64)
    assignment_title: str = Field(alias="assignmentTitle", min_length=1, max_length=300)
    order_type: str = Field(alias="orderType", min_length=1)
    page_count: int = Field(alias="pageCount")
    uploaded_files: List[UploadedFile] = Field(alias="uploadedFiles", default_factory=list)
    cloudinary_folder: Optional[str] = Field(alias="cloudinaryFolder", default=None, max_length=500)


class DeleteOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1, max_length=64)
    student_id: str = Field(alias="studentId", min_length=1)
    page_count: int = Field(alias="pageCount")
    original_files: List[UploadedFile] = Field(alias="originalFiles", default_factory=list)
    cloudinary_folder: Optional[str] = Field(alias="cloudinaryFolder", default=None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1)
    student_id: str = Field(alias="studentId", min_length=1)
    status: str = Field(min_length=1)


@router.post("/create-order")
async def create_order(
    request: CreateOrderRequest,
    http_request: Request,
    _rate_limit: None = Depends(rate_limit("create_order", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create an order, deducting one credit per page."""
    result = await submit_order(
        db,
        user_id=auth.user_id,
        email=auth.email,
        order_id=request.order_id.strip(),
        assignment_title=request.assignment_title.strip(),
        order_type=request.order_type,
        page_count=request.page_count,
        uploaded_files=[item.model_dump() for item in request.uploaded_files],
        cloudinary_folder=request.cloudinary_folder,
    )
    await record_audit_event(
        db,
        action="order_created",
        actor_id=auth.user_id,
        actor_email=auth.email,
        target_type="order",
        target_id=result["orderId"],
        details={
            "pageCount": request.page_count,
            "creditsDeducted": result["creditsDeducted"],
            "creditsRemaining": result["creditsRemaining"],
            "ipAddress": client_identifier(http_request),
            "userAgent": http_request.headers.get("user-agent") or "unknown",
        },
    )
    return {
        "success": True,
        "orderId": result["orderId"],
        "creditsRemaining": result["creditsRemaining"],
    }


@router.post("/delete-order")
async def delete_order_endpoint(
    request: DeleteOrderRequest,
    background_tasks: BackgroundTasks,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete an order, restore the student's credits and queue file cleanup."""
    result = await delete_order(
        db,
        order_id=request.order_id,
        student_id=request.student_id,
        page_count=request.page_count,
        original_files=[item.model_dump() for item in request.original_files],
        cloudinary_folder=request.cloudinary_folder,
    )
    await record_audit_event(
        db,
        action="order_deleted",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="order",
        target_id=request.order_id,
        details={
            "studentId": request.student_id,
            "requestedPageCount": request.page_count,
            "creditsRestored": result["creditsRestored"],
            "cleanupJobId": result["cleanupJobId"],
        },
    )
    if result["cleanupJobId"]:
        background_tasks.add_task(dispatch_file_cleanup, result["cleanupJobId"])

    return {
        "success": True,
        "message": "Order deleted successfully. Cloudinary files queued for cleanup."
        if result["cloudinaryQueued"]
        else "Order deleted successfully.",
        "cloudinaryQueued": result["cloudinaryQueued"],
        "creditsRestored": result["creditsRestored"],
        "newUserStats": result["newUserStats"],
    }


@router.post("/update-order-status")
async def update_order_status_endpoint(
    request: UpdateOrderStatusRequest,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    result = await update_order_status(
        db,
        order_id=request.order_id,
        student_id=request.student_id,
        status=request.status,
        admin_id=admin.user_id,
    )
    await record_audit_event(
        db,
        action="order_status_updated",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="order",
        target_id=request.order_id,
        details={
            "studentId": request.student_id,
            "oldStatus": result["oldStatus"],
            "newStatus": result["status"],
        },
    )
    logger.info("Order %s status set to %s by admin %s", request.order_id, request.status, admin.user_id)
    return {
        "success": True,
        "message": "Order status updated successfully",
        "orderId": request.order_id,
        "status": result["status"],
    }


@router.get("/orders")
async def list_orders(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "orders": await list_user_orders(db, auth.user_id)}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "order": await get_user_order(db, auth.user_id, order_id)}
