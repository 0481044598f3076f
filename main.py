from app.favsync.run import main

if __name__ == "__main__":
    # Usage: python main.py {furaffinity,inkbunny}
    raise SystemExit(main())
