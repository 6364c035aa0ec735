from fastapi import APIRouter, Depends

from ..schemas.common import ActionResponse
from ..services.verification import VerificationGate
from ..utils.dependencies import get_gate, to_response

router = APIRouter(prefix="/api/verification", tags=["Verification"])


@router.get("")
async def verification_status(gate: VerificationGate = Depends(get_gate)):
    return {"verified": gate.is_open}


@router.post("/start", response_model=ActionResponse)
async def start_verification(gate: VerificationGate = Depends(get_gate)):
    return to_response(gate.start_verification())


@router.post("/defer", response_model=ActionResponse)
async def defer_verification(gate: VerificationGate = Depends(get_gate)):
    return to_response(gate.defer())
