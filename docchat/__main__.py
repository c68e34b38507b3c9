import uvicorn

from docchat.dependencies import load_settings


def main() -> None:
	settings = load_settings()
	uvicorn.run(
		app="docchat:create_app",
		factory=True,
		host=settings.HOST,
		port=settings.PORT,
		reload=settings.RELOAD,
		workers=settings.WORKERS,
		use_colors=True,
	)


if __name__ == "__main__":
	main()
