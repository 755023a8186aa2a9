"""Conversion API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from reelforge.dependencies import get_conversion_service, get_profiles
from reelforge.modules.project.schemas import output_to_response
from reelforge.modules.project.store import ProjectNotFoundError, StorageError
from reelforge.modules.transcoding.models import (
    ConversionFailedError,
    ConversionValidationError,
)
from reelforge.modules.transcoding.schemas import (
    ConvertRequest,
    ConvertResponse,
    ProfileResponse,
    profile_to_response,
)
from reelforge.modules.transcoding.service import ConversionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversion"])


@router.get("/profiles", response_model=list[ProfileResponse])
async def list_profiles(profiles=Depends(get_profiles)):
    """List the named conversion presets."""
    return [profile_to_response(p) for p in profiles.values()]


@router.post("/convert", response_model=ConvertResponse)
async def convert_video(
    request: ConvertRequest,
    service: ConversionService = Depends(get_conversion_service),
):
    """Render a project's source with the requested settings."""
    try:
        output = await service.convert(request)
    except ConversionValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProjectNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    except ConversionFailedError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Conversion failed", "details": e.diagnostics or str(e)},
        )
    except StorageError as e:
        logger.error(f"Conversion storage error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Conversion failed",
        )

    return ConvertResponse(output=output_to_response(output, project_id=request.project_id))
