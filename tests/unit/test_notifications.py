from pharmacy.adapters.notifications import EmailNotifications


def test_email_construit_depuis_l_alerte():
    notifications = EmailNotifications("localhost", 25, sender="pharmacy@example.com")

    email = notifications._build("stock@example.com", "Rupture de stock : Paracetamol (MED001)")

    assert email["From"] == "pharmacy@example.com"
    assert email["To"] == "stock@example.com"
    assert email["Subject"] == "[Pharmacie] Rupture de stock : Paracetamol (MED001)"
    assert "MED001" in email.get_content()
