from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from cloudstore.api.dependencies import get_current_tenant, get_resource_service
from cloudstore.core.exceptions import InvalidArgumentException
from cloudstore.schemas.resource import FileResource, Resource
from cloudstore.services.resource_service import ResourceService
from cloudstore.utils.paths import content_disposition

router = APIRouter()

# 对象存储客户端为阻塞调用，以下路由使用同步函数，由FastAPI在线程池中执行


@router.get("", response_model=Resource)
def get_resource(
    path: str = Query(..., description="资源路径"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    获取文件或文件夹信息
    """
    return resource_service.get_info(tenant_id, path)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    path: str = Query(..., description="资源路径"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    删除文件或文件夹（递归）
    """
    resource_service.delete(tenant_id, path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("", response_model=FileResource, status_code=status.HTTP_201_CREATED)
def upload_resource(
    path: Optional[str] = Query(None, description="目标文件夹，默认为根目录"),
    upload_object: Optional[UploadFile] = File(None, alias="object"),
    file: Optional[UploadFile] = File(None),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    上传文件到指定文件夹

    表单字段名为 object 或 file，缺失的父文件夹会自动创建
    """
    upload = upload_object or file
    if upload is None:
        raise InvalidArgumentException("缺少上传文件")

    size = upload.size
    if size is None:
        upload.file.seek(0, 2)
        size = upload.file.tell()
        upload.file.seek(0)

    return resource_service.upload(
        tenant_id,
        path,
        upload.filename,
        upload.file,
        size,
        upload.content_type,
    )


@router.get("/download")
def download_resource(
    path: Optional[str] = Query(None, description="资源路径，默认为根目录"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    下载文件，文件夹以ZIP格式流式下载
    """
    download = resource_service.download(tenant_id, path)
    return StreamingResponse(
        download.body,
        media_type=download.media_type,
        headers={"Content-Disposition": content_disposition(download.filename)},
    )


@router.get("/move", response_model=Resource)
def move_resource(
    source: str = Query(..., alias="from", description="源路径"),
    target: str = Query(..., alias="to", description="目标路径"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    移动或重命名文件/文件夹
    """
    return resource_service.move(tenant_id, source, target)


@router.get("/search", response_model=List[Resource])
def search_resources(
    query: str = Query(..., description="名称关键字（区分大小写）"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    按名称搜索文件和文件夹
    """
    return resource_service.search(tenant_id, query)
