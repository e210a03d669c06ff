from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import FileResponse

from app.core.config import Settings
from app.dependencies import get_app_settings, get_controller, get_gallery
from app.schemas import SampleListResponse, SampleResponse, ViewStateResponse
from image_workflow import (
    ImageAsset,
    ImageWorkflowController,
    InputChannel,
    InvalidInputError,
    InvalidStateError,
    SampleGallery,
    ServiceError,
    asset_from_upload,
)

api_router = APIRouter(prefix="/api/v1", tags=["workflow"])
preview_router = APIRouter(prefix="/preview", tags=["previews"])


def _build_view_state(request: Request, controller: ImageWorkflowController) -> ViewStateResponse:
    view = controller.view_state()
    return ViewStateResponse.from_view_state(
        view,
        source_url=str(request.url_for("get_source_preview")),
        result_url=str(request.url_for("get_result_preview")),
        download_url=str(request.url_for("download_result")),
    )


async def _read_upload(
    file: UploadFile,
    channel: InputChannel,
    settings: Settings,
) -> ImageAsset:
    try:
        contents = await file.read()
    finally:
        await file.close()
    try:
        return asset_from_upload(
            contents,
            content_type=file.content_type,
            filename=file.filename,
            channel=channel,
            max_bytes=settings.max_upload_bytes,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@api_router.get("/state", response_model=ViewStateResponse, name="get_state")
async def get_state(request: Request, controller: ImageWorkflowController = Depends(get_controller)) -> ViewStateResponse:
    return _build_view_state(request, controller)


@api_router.post("/source/upload", response_model=ViewStateResponse, name="upload_source")
async def upload_source(
    request: Request,
    file: UploadFile = File(...),
    controller: ImageWorkflowController = Depends(get_controller),
    settings: Settings = Depends(get_app_settings),
) -> ViewStateResponse:
    asset = await _read_upload(file, InputChannel.FILE_PICKER, settings)
    controller.load_source(asset)
    return _build_view_state(request, controller)


@api_router.post("/source/drop", response_model=ViewStateResponse, name="drop_source")
async def drop_source(
    request: Request,
    file: UploadFile = File(...),
    controller: ImageWorkflowController = Depends(get_controller),
    settings: Settings = Depends(get_app_settings),
) -> ViewStateResponse:
    asset = await _read_upload(file, InputChannel.DRAG_AND_DROP, settings)
    controller.load_source(asset)
    return _build_view_state(request, controller)


@api_router.get("/samples", response_model=SampleListResponse, name="list_samples")
async def list_samples(gallery: SampleGallery = Depends(get_gallery)) -> SampleListResponse:
    samples = [
        SampleResponse(cached=gallery.is_cached(sample.sample_id), **sample.to_dict())
        for sample in gallery.samples
    ]
    return SampleListResponse(samples=samples)


@api_router.post("/source/samples/{sample_id}", response_model=ViewStateResponse, name="select_sample")
async def select_sample(
    sample_id: str,
    request: Request,
    controller: ImageWorkflowController = Depends(get_controller),
    gallery: SampleGallery = Depends(get_gallery),
) -> ViewStateResponse:
    try:
        asset = await gallery.select(sample_id)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ServiceError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    controller.load_source(asset)
    return _build_view_state(request, controller)


@api_router.delete("/source", response_model=ViewStateResponse, name="clear_source")
async def clear_source(request: Request, controller: ImageWorkflowController = Depends(get_controller)) -> ViewStateResponse:
    controller.clear_source()
    return _build_view_state(request, controller)


@api_router.post(
    "/removal",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ViewStateResponse,
    name="request_removal",
)
async def request_removal(request: Request, controller: ImageWorkflowController = Depends(get_controller)) -> ViewStateResponse:
    try:
        controller.request_removal()
    except InvalidStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return _build_view_state(request, controller)


@api_router.get("/download", response_class=FileResponse, name="download_result")
async def download_result(controller: ImageWorkflowController = Depends(get_controller)) -> FileResponse:
    try:
        path = controller.download()
    except InvalidStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    result = controller.result
    media_type: Optional[str] = result.media_type if result else None
    return FileResponse(
        path,
        media_type=media_type or "application/octet-stream",
        filename=path.name,
    )


def _preview(asset: Optional[ImageAsset], missing: str) -> Response:
    if asset is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=missing)
    return Response(
        content=asset.data,
        media_type=asset.media_type,
        headers={"Cache-Control": "no-store", "ETag": f'"{asset.asset_id}"'},
    )


@preview_router.get("/source", name="get_source_preview")
async def get_source_preview(controller: ImageWorkflowController = Depends(get_controller)) -> Response:
    return _preview(controller.source, "No source image loaded")


@preview_router.get("/result", name="get_result_preview")
async def get_result_preview(controller: ImageWorkflowController = Depends(get_controller)) -> Response:
    return _preview(controller.result, "No processed image available")
