import uvicorn


def main() -> None:
    uvicorn.run("business_api.app:create_app", factory=True, host="0.0.0.0", port=3000)


if __name__ == "__main__":
    main()
