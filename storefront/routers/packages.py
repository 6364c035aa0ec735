from fastapi import APIRouter, Depends
from typing import List, Optional

from ..schemas.common import ActionResponse
from ..schemas.package import PackageResponse
from ..services.package_service import PACKAGES, PackageSelector
from ..utils.dependencies import get_package_selector, to_response

router = APIRouter(prefix="/api/packages", tags=["Packages"])


@router.get("", response_model=List[PackageResponse])
async def list_packages(selector: PackageSelector = Depends(get_package_selector)):
    selected = selector.selected_package()
    return [
        PackageResponse(
            package=pkg,
            availability=selector.get_package_availability(pkg),
            selected=selected is not None and selected.id == pkg.id,
        )
        for pkg in PACKAGES
    ]


@router.post("/{package_id}/select", response_model=ActionResponse)
async def select_package(package_id: str, selector: PackageSelector = Depends(get_package_selector)):
    return to_response(selector.select_package(package_id))


@router.get("/selected", response_model=Optional[PackageResponse])
async def get_selected_package(selector: PackageSelector = Depends(get_package_selector)):
    pkg = selector.selected_package()
    if pkg is None:
        return None
    return PackageResponse(
        package=pkg,
        availability=selector.get_package_availability(pkg),
        selected=True,
    )


@router.post("/proceed", response_model=ActionResponse)
async def proceed_to_schedule(selector: PackageSelector = Depends(get_package_selector)):
    return to_response(selector.proceed_to_schedule())
