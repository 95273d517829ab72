from __future__ import annotations

from identity_api.db.pg.base import Base
from identity_api.db.pg import models as _models  # noqa: F401
from identity_api.db.pg.session import engine


def main() -> None:
    Base.metadata.create_all(bind=engine)
    tables = ", ".join(sorted(Base.metadata.tables))
    print(f"Schema ready on {engine.url.render_as_string(hide_password=True)}: {tables}")


if __name__ == "__main__":
    main()
