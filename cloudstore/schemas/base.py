from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    所有模式类的基类
    """

    model_config = ConfigDict(from_attributes=True)
