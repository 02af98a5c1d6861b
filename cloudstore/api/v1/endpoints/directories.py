from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from cloudstore.api.dependencies import get_current_tenant, get_resource_service
from cloudstore.schemas.resource import DirectoryResource, Resource
from cloudstore.services.resource_service import ResourceService

router = APIRouter()


@router.get("", response_model=List[Resource])
def list_directory(
    path: Optional[str] = Query(None, description="文件夹路径，默认为根目录"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    列出文件夹内容（不递归）
    """
    return resource_service.list_directory(tenant_id, path)


@router.post("", response_model=DirectoryResource, status_code=status.HTTP_201_CREATED)
def create_directory(
    path: str = Query(..., description="新文件夹路径，父文件夹必须已存在"),
    tenant_id: int = Depends(get_current_tenant),
    resource_service: ResourceService = Depends(get_resource_service),
):
    """
    创建空文件夹
    """
    return resource_service.create_folder(tenant_id, path)
