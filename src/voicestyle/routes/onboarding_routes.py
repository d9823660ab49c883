"""Onboarding step routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from voicestyle.services.database import get_user_by_email
from voicestyle.services.onboarding import InvalidBusinessType, select_business_type
from voicestyle.services.style_writer import StyleWriteError, StyleWriter

_logger = logging.getLogger(__name__)
router = APIRouter(prefix="/onboarding", tags=["onboarding"])


class BusinessTypeRequest(BaseModel):
    email: str
    business_type: str


def get_style_writer(request: Request) -> StyleWriter:
    """Style writer created at startup"""
    return request.app.state.style_writer


@router.post("/business-type")
async def submit_business_type(body: BusinessTypeRequest, writer: StyleWriter = Depends(get_style_writer)):
    """Store the selected business type and mark voice analysis as started"""
    _logger.info("Business Type Endpoint Hit")
    try:
        result = select_business_type(email=body.email, business_type=body.business_type, writer=writer)
    except InvalidBusinessType as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StyleWriteError as e:
        _logger.error(f"Error saving style record for {body.email}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not save your onboarding progress. Please try again.")

    return JSONResponse(content={
        "next_step": result.next_step,
        "business_type": result.business_type,
        "style_status": result.style_status,
    })


@router.get("/style/{email}")
async def get_style_record(email: str, writer: StyleWriter = Depends(get_style_writer)):
    """Return the stored style record for a user"""
    user = get_user_by_email(email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        record = writer.get(user.id)
    except StyleWriteError as e:
        _logger.error(f"Error reading style record for {email}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not load style record")
    if record is None:
        raise HTTPException(status_code=404, detail="Style record not found")
    return JSONResponse(content=jsonable_encoder(record))
