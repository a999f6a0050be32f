from __future__ import annotations

from concurrent.futures import Future
import logging

import customtkinter as ctk

from bookshelf_client.config import AppSettings, ConfigurationError
from bookshelf_client.lifecycle import AppLifecycle, ForegroundRevalidator
from bookshelf_client.logging_utils import configure_logging
from bookshelf_client.navigation import Screen
from bookshelf_client.services import AsyncRunner, BookshelfService, build_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class MainWindow(ctk.CTk):
	def __init__(self, service: BookshelfService, runner: AsyncRunner):
		super().__init__()
		self._service = service
		self._runner = runner
		self._current_screen = Screen.SPLASH
		self.title("Bookshelf")
		self.geometry("480x640")
		self.minsize(400, 560)

		self._frames: dict[Screen, ctk.CTkFrame] = {
			Screen.SPLASH: self._build_splash(),
			Screen.LOGIN: self._build_login(),
			Screen.REGISTER: self._build_register(),
			Screen.LIBRARY: self._build_library(),
		}
		self._show_screen(Screen.SPLASH)

		self._revalidator: ForegroundRevalidator = service.foreground_revalidator(loop=runner.loop)
		self.bind("<Unmap>", self._on_unmap)
		self.bind("<Map>", self._on_map)
		self.protocol("WM_DELETE_WINDOW", self._on_close)

		self._service.attach_navigator(self)
		self._run_async(self._service.start(), on_success=lambda state: self._refresh_auth_state())

	@property
	def current_screen(self) -> Screen:
		return self._current_screen

	def navigate(self, screen: Screen) -> None:
		# Called from the event loop thread; widgets are only touched on the Tk thread.
		self._current_screen = screen
		self.after(0, lambda: self._show_screen(screen))

	def _show_screen(self, screen: Screen):
		self._current_screen = screen
		for frame in self._frames.values():
			frame.pack_forget()
		self._frames[screen].pack(fill="both", expand=True, padx=16, pady=16)
		self._refresh_auth_state()

	def _build_splash(self) -> ctk.CTkFrame:
		frame = ctk.CTkFrame(self)
		ctk.CTkLabel(frame, text="Bookshelf", font=ctk.CTkFont(size=28, weight="bold")).pack(expand=True)
		ctk.CTkLabel(frame, text="Checking your session...").pack(pady=(0, 32))
		return frame

	def _build_login(self) -> ctk.CTkFrame:
		frame = ctk.CTkFrame(self)
		ctk.CTkLabel(frame, text="Welcome", font=ctk.CTkFont(size=24, weight="bold")).pack(pady=(24, 4))
		ctk.CTkLabel(frame, text="Sign in to open your library").pack(pady=(0, 16))

		self._login_email = ctk.CTkEntry(frame, placeholder_text="email@example.com")
		self._login_email.pack(fill="x", padx=24, pady=6)
		self._login_password = ctk.CTkEntry(frame, placeholder_text="Password", show="*")
		self._login_password.pack(fill="x", padx=24, pady=6)

		self._login_error_label = ctk.CTkLabel(frame, text="", text_color="#d14343", wraplength=360)
		self._login_error_label.pack(anchor="w", padx=24, pady=(4, 4))

		self._login_btn = ctk.CTkButton(frame, text="Sign in", command=self._sign_in)
		self._login_btn.pack(fill="x", padx=24, pady=8)

		ctk.CTkButton(
			frame,
			text="No account yet? Sign up",
			fg_color="transparent",
			command=lambda: self._show_screen(Screen.REGISTER),
		).pack(pady=(4, 4))
		ctk.CTkButton(
			frame,
			text="Server settings",
			fg_color="transparent",
			command=self._open_host_dialog,
		).pack(pady=(0, 8))
		return frame

	def _build_register(self) -> ctk.CTkFrame:
		frame = ctk.CTkFrame(self)
		ctk.CTkLabel(frame, text="Create an account", font=ctk.CTkFont(size=24, weight="bold")).pack(pady=(24, 16))

		self._register_name = ctk.CTkEntry(frame, placeholder_text="Name")
		self._register_name.pack(fill="x", padx=24, pady=6)
		self._register_email = ctk.CTkEntry(frame, placeholder_text="email@example.com")
		self._register_email.pack(fill="x", padx=24, pady=6)
		self._register_password = ctk.CTkEntry(frame, placeholder_text="Password", show="*")
		self._register_password.pack(fill="x", padx=24, pady=6)

		self._register_status_label = ctk.CTkLabel(frame, text="", text_color="#d14343", wraplength=360)
		self._register_status_label.pack(anchor="w", padx=24, pady=(4, 4))

		self._register_btn = ctk.CTkButton(frame, text="Sign up", command=self._sign_up)
		self._register_btn.pack(fill="x", padx=24, pady=8)
		ctk.CTkButton(
			frame,
			text="Back to sign in",
			fg_color="transparent",
			command=lambda: self._show_screen(Screen.LOGIN),
		).pack(pady=(4, 8))
		return frame

	def _build_library(self) -> ctk.CTkFrame:
		frame = ctk.CTkFrame(self)
		ctk.CTkLabel(frame, text="My library", font=ctk.CTkFont(size=24, weight="bold")).pack(pady=(24, 8))
		self._status_label = ctk.CTkLabel(frame, text="")
		self._status_label.pack(pady=(0, 16))

		action_row = ctk.CTkFrame(frame)
		action_row.pack(fill="x", padx=16, pady=8)
		ctk.CTkButton(action_row, text="Server settings", command=self._open_host_dialog).pack(
			side="left", padx=(8, 6), pady=8
		)
		self._sign_out_btn = ctk.CTkButton(action_row, text="Sign out", command=self._sign_out)
		self._sign_out_btn.pack(side="right", padx=(6, 8), pady=8)
		return frame

	def _run_async(self, coroutine, on_success=None, on_error=None):
		future = self._runner.submit(coroutine)

		def done(completed: Future):
			try:
				result = completed.result()
			except Exception as exc:
				logger.exception("Background operation failed")
				if on_error:
					self.after(0, lambda error=exc: on_error(error))
				return
			if on_success:
				self.after(0, lambda: on_success(result))

		future.add_done_callback(done)

	def _refresh_auth_state(self):
		state = self._service.auth_state()
		if state.is_signed_in:
			self._status_label.configure(text="Signed in")
		else:
			self._status_label.configure(text="Not signed in")
		self._login_error_label.configure(text=state.error or "")

	def _sign_in(self):
		email = self._login_email.get().strip()
		password = self._login_password.get()
		if "@" not in email:
			self._login_error_label.configure(text="Enter a valid email address")
			return
		if len(password) < MIN_PASSWORD_LENGTH:
			self._login_error_label.configure(text=f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
			return

		self._login_error_label.configure(text="")
		self._login_btn.configure(state="disabled", text="Signing in...")

		def finish(_state=None):
			self._login_btn.configure(state="normal", text="Sign in")
			self._login_password.delete(0, "end")
			self._refresh_auth_state()

		self._run_async(self._service.sign_in(email, password), on_success=finish, on_error=finish)

	def _sign_up(self):
		name = self._register_name.get().strip()
		email = self._register_email.get().strip()
		password = self._register_password.get()
		if not name or "@" not in email or len(password) < MIN_PASSWORD_LENGTH:
			self._register_status_label.configure(
				text=f"Name, a valid email and a password of {MIN_PASSWORD_LENGTH}+ characters are required",
				text_color="#d14343",
			)
			return

		self._register_btn.configure(state="disabled")

		def finish(user):
			self._register_btn.configure(state="normal")
			if user is None:
				error = self._service.auth_state().error or "Registration failed"
				self._register_status_label.configure(text=error, text_color="#d14343")
				return
			self._register_status_label.configure(text="Account created, you can sign in now", text_color="#3fa34d")
			self._register_password.delete(0, "end")

		self._run_async(self._service.sign_up(name, email, password), on_success=finish)

	def _sign_out(self):
		self._sign_out_btn.configure(state="disabled")

		def finish(_result=None):
			self._sign_out_btn.configure(state="normal")
			self._refresh_auth_state()

		self._run_async(self._service.sign_out(), on_success=finish, on_error=finish)

	def _open_host_dialog(self):
		HostDialog(self, self._service, self._run_async)

	def _on_unmap(self, event):
		if event.widget is self:
			self._revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)

	def _on_map(self, event):
		if event.widget is self:
			self._revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)

	def _on_close(self):
		self._service.close()
		self._runner.stop()
		self.destroy()


class HostDialog(ctk.CTkToplevel):
	def __init__(self, master: MainWindow, service: BookshelfService, run_async):
		super().__init__(master)
		self._service = service
		self._run_async = run_async
		self.title("Server settings")
		self.geometry("420x220")
		self.transient(master)

		ctk.CTkLabel(self, text="API host").pack(anchor="w", padx=16, pady=(16, 2))
		self._host_entry = ctk.CTkEntry(self, placeholder_text="http://192.168.0.10:3000")
		self._host_entry.pack(fill="x", padx=16, pady=(0, 6))

		self._status_label = ctk.CTkLabel(self, text="")
		self._status_label.pack(anchor="w", padx=16, pady=4)

		button_row = ctk.CTkFrame(self)
		button_row.pack(fill="x", padx=16, pady=8)
		ctk.CTkButton(button_row, text="Test", command=self._check).pack(side="left", padx=6, pady=8)
		ctk.CTkButton(button_row, text="Reset", command=self._reset).pack(side="left", padx=6, pady=8)
		ctk.CTkButton(button_row, text="Save", command=self._save).pack(side="right", padx=6, pady=8)

		self._run_async(self._service.effective_host(), on_success=self._load_host)

	def _load_host(self, host: str):
		self._host_entry.delete(0, "end")
		self._host_entry.insert(0, host)
		self._check()

	def _check(self):
		host = self._host_entry.get().strip()
		self._status_label.configure(text="Checking server...", text_color=("gray10", "gray90"))

		def show(is_online: bool):
			if is_online:
				self._status_label.configure(text="Server online", text_color="#3fa34d")
			else:
				self._status_label.configure(text="Server unreachable", text_color="#d14343")

		self._run_async(self._service.check_server(host), on_success=show)

	def _save(self):
		host = self._host_entry.get().strip()
		self._run_async(
			self._service.save_host(host),
			on_success=lambda _result: self.destroy(),
			on_error=lambda exc: self._status_label.configure(text=str(exc), text_color="#d14343"),
		)

	def _reset(self):
		self._run_async(self._service.clear_host(), on_success=lambda _result: self.destroy())


def run_app() -> None:
	ctk.set_appearance_mode("System")
	ctk.set_default_color_theme("blue")

	try:
		settings = AppSettings.from_env()
	except ConfigurationError as exc:
		configure_logging()
		logger.error("Configuration error: %s", exc)
		app = ctk.CTk()
		app.title("Bookshelf - Configuration Error")
		app.geometry("640x280")
		message = ctk.CTkTextbox(app)
		message.pack(fill="both", expand=True, padx=16, pady=16)
		message.insert(
			"1.0",
			"Configuration error. Fix the environment variables (or .env file) and restart:\n\n"
			f"{exc}\n",
		)
		app.mainloop()
		return

	configure_logging(settings.log_level)
	runner = AsyncRunner()
	runner.start()
	window = MainWindow(build_service(settings), runner)
	window.mainloop()
