from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from image_workflow import ViewState


class ViewStateResponse(BaseModel):
    state: str
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    result_id: Optional[str] = None
    result_url: Optional[str] = None
    can_remove: bool
    can_download: bool
    can_clear: bool
    is_processing: bool
    remove_label: str
    last_error: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def from_view_state(
        cls,
        view: ViewState,
        source_url: Optional[str] = None,
        result_url: Optional[str] = None,
        download_url: Optional[str] = None,
    ) -> "ViewStateResponse":
        return cls(
            state=view.state.value,
            source_id=view.source_id,
            source_url=source_url if view.source_id else None,
            result_id=view.result_id,
            result_url=result_url if view.result_id else None,
            can_remove=view.can_remove,
            can_download=view.can_download,
            can_clear=view.can_clear,
            is_processing=view.is_processing,
            remove_label=view.remove_label,
            last_error=view.last_error,
            download_url=download_url if view.can_download else None,
        )


class SampleResponse(BaseModel):
    sample_id: str
    title: str
    url: str
    cached: bool = False


class SampleListResponse(BaseModel):
    samples: List[SampleResponse]
