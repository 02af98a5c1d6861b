from enum import Enum
from typing import Literal, Union

from pydantic import Field
from typing_extensions import Annotated

from cloudstore.schemas.base import BaseSchema


class ResourceType(str, Enum):
    """
    资源类型枚举
    """

    FILE = "FILE"
    DIRECTORY = "DIRECTORY"


class FileResource(BaseSchema):
    """
    文件资源
    """

    path: str = Field(..., description="父文件夹路径", examples=["user-1-files/test/"])
    name: str = Field(..., description="文件名", examples=["test.txt"])
    size: int = Field(..., description="文件大小（字节）", examples=[1220])
    type: Literal[ResourceType.FILE] = ResourceType.FILE


class DirectoryResource(BaseSchema):
    """
    文件夹资源
    """

    path: str = Field(..., description="父文件夹路径", examples=["user-1-files/"])
    name: str = Field(..., description="文件夹名", examples=["test"])
    type: Literal[ResourceType.DIRECTORY] = ResourceType.DIRECTORY


Resource = Annotated[Union[FileResource, DirectoryResource], Field(discriminator="type")]
