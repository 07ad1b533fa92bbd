from approtator.cli import app


def main():
    app(prog_name="approtator")


if __name__ == "__main__":
    main()
