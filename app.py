"""Application entry point for the Tucing Suites booking calendar."""

from tucing.webapp import create_app

app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
