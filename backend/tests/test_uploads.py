import os
import re

from conftest import add_home, login, write_file
from uploads import TOKEN_LENGTH, random_token, remove_upload, stored_filename

STORED_NAME = re.compile(r"^[a-z0-9]{8}-cat\.png$")


class TestStoredFilename:
    def test_token_prefix_and_original_suffix(self):
        assert STORED_NAME.match(stored_filename("cat.png"))

    def test_no_collisions_over_many_uploads(self):
        names = {stored_filename("cat.png") for _ in range(1000)}
        assert len(names) == 1000

    def test_client_paths_are_reduced_to_basename(self):
        assert STORED_NAME.match(stored_filename("C:\\Users\\me\\cat.png"))
        assert STORED_NAME.match(stored_filename("../../etc/cat.png"))

    def test_token_shape(self):
        token = random_token()
        assert len(token) == TOKEN_LENGTH
        assert token.isalnum()


class TestRemoveUpload:
    def test_removes_file_by_url(self, tmp_path):
        write_file(str(tmp_path), "abcd1234-cat.png")
        assert remove_upload("/uploads/abcd1234-cat.png", str(tmp_path)) is True
        assert not os.path.exists(tmp_path / "abcd1234-cat.png")

    def test_ignores_missing_and_foreign_urls(self, tmp_path):
        assert remove_upload("/uploads/nope.png", str(tmp_path)) is False
        assert remove_upload("https://cdn.example.com/cat.png", str(tmp_path)) is False
        assert remove_upload(None, str(tmp_path)) is False


class TestPhotoUploadThroughHostRoutes:
    def _form(self, **overrides):
        form = {"name": "Cat House", "price_per_night": "80", "location": "Porto", "rating": "4.5"}
        form.update(overrides)
        return form

    def test_photo_is_stored_and_served_from_uploads(self, client, repos, settings, host_user):
        login(client, host_user.email)

        response = client.post(
            "/host/add-home",
            data=self._form(),
            files={"photo": ("cat.png", b"\x89PNG fake", "image/png")},
            follow_redirects=False,
        )

        assert response.status_code == 302
        [home] = repos.homes.homes.values()
        filename = home.photo.rsplit("/", 1)[1]
        assert home.photo.startswith("/uploads/")
        assert STORED_NAME.match(filename)
        assert os.path.exists(os.path.join(settings.upload_dir, filename))

        served = client.get(home.photo)
        assert served.status_code == 200
        assert served.content == b"\x89PNG fake"

    def test_missing_photo_field_is_not_an_error(self, client, repos, host_user):
        login(client, host_user.email)

        response = client.post("/host/add-home", data=self._form(), follow_redirects=False)

        assert response.status_code == 302
        [home] = repos.homes.homes.values()
        assert home.photo is None

    def test_other_field_names_are_ignored(self, client, repos, settings, host_user):
        login(client, host_user.email)

        client.post(
            "/host/add-home",
            data=self._form(),
            files={"picture": ("cat.png", b"x", "image/png")},
            follow_redirects=False,
        )

        [home] = repos.homes.homes.values()
        assert home.photo is None
        assert os.listdir(settings.upload_dir) == []

    def test_new_photo_replaces_old_file(self, client, repos, settings, host_user):
        write_file(settings.upload_dir, "oldphoto-cat.png")
        home = add_home(repos, host_user, photo="/uploads/oldphoto-cat.png")
        login(client, host_user.email)

        client.post(
            "/host/edit-home",
            data=self._form(id=home.id),
            files={"photo": ("cat.png", b"new", "image/png")},
            follow_redirects=False,
        )

        updated = repos.homes.homes[home.id]
        assert updated.photo != "/uploads/oldphoto-cat.png"
        assert os.listdir(settings.upload_dir) == [updated.photo.rsplit("/", 1)[1]]


class TestRejectedRequestsStoreNothing:
    PHOTO = {"photo": ("cat.png", b"\x89PNG fake", "image/png")}

    def test_invalid_form_with_photo(self, client, repos, settings, host_user):
        login(client, host_user.email)

        response = client.post(
            "/host/add-home",
            data={"name": "Bad", "price_per_night": "-5", "location": "X"},
            files=self.PHOTO,
        )

        assert response.status_code == 422
        assert repos.homes.homes == {}
        assert os.listdir(settings.upload_dir) == []

    def test_stale_login_with_photo(self, client, repos, settings, host_user):
        login(client, host_user.email)
        del repos.users.users[host_user.id]

        response = client.post(
            "/host/add-home",
            data={"name": "Cat House", "price_per_night": "80", "location": "Porto"},
            files=self.PHOTO,
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/login"
        assert os.listdir(settings.upload_dir) == []

    def test_editing_someone_elses_home_with_photo(self, client, repos, settings, host_user, guest_user):
        other = add_home(repos, guest_user, "Theirs")
        login(client, host_user.email)

        response = client.post(
            "/host/edit-home",
            data={"id": other.id, "name": "Taken", "price_per_night": "1", "location": "X"},
            files=self.PHOTO,
        )

        assert response.status_code == 404
        assert repos.homes.homes[other.id].photo is None
        assert os.listdir(settings.upload_dir) == []
