from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from cloudstore.api.dependencies import get_current_tenant, get_report_service
from cloudstore.schemas.report import ActualStatusResponse, ReportUploadResponse
from cloudstore.services.report_service import ReportService
from cloudstore.utils.paths import content_disposition

router = APIRouter()


@router.post(
    "/report", response_model=ReportUploadResponse, status_code=status.HTTP_201_CREATED
)
async def upload_report(
    file: UploadFile = File(...),
    tenant_id: int = Depends(get_current_tenant),
    report_service: ReportService = Depends(get_report_service),
):
    """
    上传待处理文档

    支持 pdf、docx、xlsx，大小不超过 UPLOAD_MAX_BYTES。
    上传成功后文档状态为 UPLOADED，处理服务会通过消息总线收到通知
    """
    return await report_service.upload_report(tenant_id, file)


@router.get("/status", response_model=ActualStatusResponse)
async def get_actual_status(
    file_id: UUID = Query(..., alias="fileId", description="文件ID"),
    tenant_id: int = Depends(get_current_tenant),
    report_service: ReportService = Depends(get_report_service),
):
    """
    查询文档当前处理状态
    """
    return await report_service.get_actual_status(tenant_id, file_id)


@router.get("/download/{file_id}")
async def download_report(
    file_id: UUID,
    tenant_id: int = Depends(get_current_tenant),
    report_service: ReportService = Depends(get_report_service),
):
    """
    下载已上传的文档
    """
    artefact = await report_service.open_artefact(tenant_id, file_id)
    return StreamingResponse(
        artefact.body,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(artefact.file_name)},
    )
