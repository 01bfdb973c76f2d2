from resumezap.app import ResumeZapService
from resumezap.core import get_settings


def main() -> None:
    settings = get_settings()
    service = ResumeZapService(settings)
    service.run()


if __name__ == "__main__":
    main()
