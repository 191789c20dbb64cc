DIALOG_STYLE = """
QDialog {
    background-color: #121212;
    color: white;
}

QLabel {
    color: rgba(255, 255, 255, 200);
    font-family: "Segoe UI";
    font-size: 13px;
}

QLabel#StatusLabel {
    color: rgba(255, 255, 255, 140);
    font-size: 12px;
}

QLabel#StatusLabel[state="valid"] {
    color: #4caf50;
}

QLabel#StatusLabel[state="invalid"] {
    color: #ff5252;
}

QLineEdit {
    background-color: rgba(255, 255, 255, 0.04);
    border: 1px solid rgba(255, 255, 255, 0.08);
    border-radius: 6px;
    padding: 6px 10px;
    color: white;
    selection-background-color: #3d5afe;
}

QLineEdit:focus {
    border: 1px solid #3d5afe;
}

QPushButton {
    background-color: rgba(255, 255, 255, 0.05);
    border: 1px solid rgba(255, 255, 255, 0.08);
    border-radius: 6px;
    padding: 8px 18px;
    color: white;
    font-weight: 500;
}

QPushButton:hover {
    background-color: rgba(255, 255, 255, 0.1);
}

QPushButton:disabled {
    color: rgba(255, 255, 255, 0.3);
}

QPushButton#PrimaryButton {
    background-color: #3d5afe;
    border: none;
}

QPushButton#PrimaryButton:hover {
    background-color: #536dfe;
}

QPushButton#PrimaryButton:disabled {
    background-color: rgba(61, 90, 254, 0.35);
}
"""


VIEWER_STYLE = """
QWidget#ScreensaverView {
    background-color: black;
}

QLabel#LoadingLabel {
    color: rgba(255, 255, 255, 160);
    font-family: "Segoe UI";
    font-size: 18px;
    background: transparent;
}
"""
