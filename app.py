from src.rfid_attendance.rfid_attendance.main import create_app

app = create_app()


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000, debug=app.config["DEBUG"], use_reloader=False)
