from typing import Any, Dict

from sqlalchemy.orm import as_declarative, declared_attr


@as_declarative()
class Base:
    """
    SQLAlchemy 模型的基类
    """

    __name__: str

    # 未显式声明时根据类名生成表名
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    def dict(self) -> Dict[str, Any]:
        """
        将模型转换为字典
        """
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}
