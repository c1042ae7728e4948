def test_send_and_read_conversation(client, register, sent_emails):
    alice, alice_headers = register("alice")
    bob, bob_headers = register("bob")
    carol, carol_headers = register("carol")

    first = client.post('/api/messages', json={"recipientId": bob['id'], "text": "  hi bob  "},
                        headers=alice_headers)
    assert first.status_code == 201
    assert first.get_json()['text'] == "hi bob"
    client.post('/api/messages', json={"recipientId": alice['id'], "text": "hi alice"}, headers=bob_headers)
    client.post('/api/messages', json={"recipientId": bob['id'], "text": "not for alice"},
                headers=carol_headers)

    conversation = client.get(f"/api/messages/{bob['id']}", headers=alice_headers).get_json()
    assert [m['text'] for m in conversation] == ["hi bob", "hi alice"]
    assert conversation[0]['sender'] == alice['id']
    assert conversation[0]['recipient'] == bob['id']

    assert len(sent_emails) == 3
    assert sent_emails[0]['to'] == ["bob@example.com"]
    assert "alice sent you a new message: hi bob" == sent_emails[0]['text']


def test_send_message_validation(client, register):
    _, headers = register("alice")
    bob, _ = register("bob")
    assert client.post('/api/messages', json={"recipientId": bob['id'], "text": "   "},
                       headers=headers).status_code == 400
    assert client.post('/api/messages', json={"text": "hello"}, headers=headers).status_code == 400
    assert client.post('/api/messages', json={"recipientId": bob['id'], "text": "x" * 2001},
                       headers=headers).status_code == 400
    assert client.post('/api/messages', json={"recipientId": 999, "text": "hello"},
                       headers=headers).status_code == 404


def test_message_email_respects_preference(client, register, sent_emails):
    _, alice_headers = register("alice")
    bob, bob_headers = register("bob")
    client.put(f"/api/users/{bob['id']}", json={"notificationPreferences": {"newMessage": False}},
               headers=bob_headers)

    response = client.post('/api/messages', json={"recipientId": bob['id'], "text": "quiet"},
                           headers=alice_headers)
    assert response.status_code == 201
    assert sent_emails == []


def test_message_email_failure_does_not_fail_request(client, register, monkeypatch):
    import mailer

    def failing_send(**kwargs):
        raise mailer.EmailError("boom")

    monkeypatch.setattr(mailer, 'send_email', failing_send)
    _, alice_headers = register("alice")
    bob, _ = register("bob")

    response = client.post('/api/messages', json={"recipientId": bob['id'], "text": "hi"},
                           headers=alice_headers)
    assert response.status_code == 201
