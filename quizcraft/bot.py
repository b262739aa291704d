import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from typing import Any, Dict, List, Optional
from datetime import datetime

from .data_manager import DataManager
from .config_manager import ConfigManager
from .quiz_engine import QuizEngine
from .quiz_controller import QuizController, QuizControllerError
from .models import AggregateStats, Question, QuizSession, SessionResult
from .storage import JsonFileStore, StoreUnavailable

logger = logging.getLogger(__name__)

COLOR_SUCCESS = 0x00ff00
COLOR_ERROR = 0xff0000
COLOR_INFO = 0x6699ff
COLOR_WARNING = 0xffaa00

CHOICE_LETTERS = "ABCDEFGHIJ"


def resolve_choice(question: Question, choice: str) -> str:
    """
    Map a user's choice (letter, 1-based number or the choice text) to choice text.

    Raises:
        ValueError: If the choice does not match any option
    """
    value = choice.strip()
    if question.has_choice(value):
        return value
    if value.isdigit():
        index = int(value) - 1
    elif len(value) == 1 and value.upper() in CHOICE_LETTERS:
        index = CHOICE_LETTERS.index(value.upper())
    else:
        index = -1
    if 0 <= index < len(question.choices):
        return question.choices[index].text
    raise ValueError(f"'{choice}' is not one of the options")


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds:02d}s" if minutes else f"{seconds}s"


def build_question_embed(session: QuizSession) -> discord.Embed:
    question = session.current_question
    embed = discord.Embed(
        title=f"❓ Question {session.current_index + 1}/{session.total_questions}",
        description=question.text,
        color=COLOR_INFO
    )
    options = "\n".join(
        f"**{CHOICE_LETTERS[index]}.** {choice.text}"
        for index, choice in enumerate(question.choices)
    )
    embed.add_field(name="Options", value=options, inline=False)
    embed.set_footer(text=f"{session.folder} • Score {session.score} • /answer, /skip, /pause, /save")
    return embed


def build_reveal_embed(session: QuizSession, correct: bool) -> discord.Embed:
    question = session.current_question
    embed = discord.Embed(
        title="✅ Correct!" if correct else "❌ Wrong",
        description=f"Correct answer: **{question.correct_choice}**",
        color=COLOR_SUCCESS if correct else COLOR_ERROR
    )
    if not correct and session.selected_option is not None:
        embed.add_field(name="Your answer", value=session.selected_option, inline=False)
    if question.explanation:
        embed.add_field(name="💡 Explanation", value=question.explanation, inline=False)
    embed.set_footer(text=f"Score {session.score}/{session.current_index + 1} • Use /next to continue")
    return embed


def build_result_embed(result: SessionResult, questions: Optional[List[Question]] = None) -> discord.Embed:
    """Completion breakdown: score, timing and per-question correctness."""
    embed = discord.Embed(
        title="🏁 Quiz Complete!",
        description=(
            f"You scored **{result.correct_answers}/{result.total_questions}** "
            f"({result.accuracy}%)"
        ),
        color=COLOR_SUCCESS if result.accuracy >= 50 else COLOR_WARNING
    )
    embed.add_field(name="⏱️ Total time", value=format_duration(result.total_time), inline=True)
    embed.add_field(name="⌛ Per question", value=format_duration(result.average_time_per_question), inline=True)
    embed.add_field(name="🔥 Longest streak", value=str(result.longest_streak), inline=True)

    if questions:
        lines = []
        for index, question in enumerate(questions[:20]):
            answer = result.answers[index] if index < len(result.answers) else None
            if answer is None:
                mark = "⏭️"
            elif question.is_correct_answer(answer):
                mark = "✅"
            else:
                mark = "❌"
            lines.append(f"{mark} Q{index + 1}")
        embed.add_field(name="Breakdown", value=" ".join(lines), inline=False)

    embed.set_footer(text="Use /star <number> to star a question for later practice")
    return embed


def build_stats_embed(title: str, stats: AggregateStats) -> discord.Embed:
    embed = discord.Embed(title=title, color=COLOR_INFO)
    if not stats.quizzes_completed:
        embed.description = "No completed quizzes yet."
        return embed
    embed.add_field(name="Quizzes completed", value=str(stats.quizzes_completed), inline=True)
    embed.add_field(name="Accuracy", value=f"{stats.accuracy:.2f}%", inline=True)
    embed.add_field(name="Questions", value=f"{stats.correct_answers}/{stats.total_questions}", inline=True)
    embed.add_field(name="Average time", value=format_duration(stats.average_time), inline=True)
    embed.add_field(
        name="Best time",
        value=format_duration(stats.best_time) if stats.best_time is not None else "-",
        inline=True
    )
    embed.add_field(name="Longest streak", value=str(stats.longest_streak), inline=True)
    if stats.last_quiz_date:
        embed.set_footer(text=f"Last quiz {datetime.fromtimestamp(stats.last_quiz_date):%Y-%m-%d %H:%M}")
    return embed


def build_saved_list_embed(summaries: List[Dict[str, Any]]) -> discord.Embed:
    embed = discord.Embed(title="💾 Saved Quizzes", color=COLOR_INFO)
    if not summaries:
        embed.description = "No saved quizzes. Use `/save` during a quiz to keep it for later."
        return embed
    lines = []
    for summary in summaries[:15]:
        saved_at = datetime.fromtimestamp(summary['timestamp']).strftime('%Y-%m-%d %H:%M')
        lines.append(
            f"`{summary['id']}` • {summary['folder']} • question "
            f"{summary['current_question']}/{summary['total_questions']} • "
            f"score {summary['score']} • {saved_at}"
        )
    embed.description = "\n".join(lines)
    embed.set_footer(text="Use /continue <id> to resume a saved quiz, /delete_saved <id> to remove it")
    return embed


def build_scheduled_list_embed(summaries: List[Dict[str, Any]]) -> discord.Embed:
    embed = discord.Embed(title="📅 Scheduled Quizzes", color=COLOR_INFO)
    if not summaries:
        embed.description = "No scheduled quizzes. Star some questions, then use `/schedule` to create one."
        return embed
    lines = []
    for summary in summaries[:15]:
        if summary['completed']:
            status = "✅ completed"
        elif summary['has_saved_state']:
            status = "💾 in progress"
        else:
            status = "🆕 not started"
        created = datetime.fromtimestamp(summary['timestamp']).strftime('%Y-%m-%d %H:%M')
        lines.append(f"`{summary['id']}` • {summary['question_count']} questions • {status} • {created}")
    embed.description = "\n".join(lines)
    embed.set_footer(text="Use /start scheduled:<id> to take a quiz, /delete_scheduled <id> to remove it")
    return embed


def build_history_embed(history: List[Dict[str, Any]]) -> discord.Embed:
    """Completed scheduled quizzes, most recent first."""
    embed = discord.Embed(title="📜 Quiz History", color=COLOR_INFO)
    if not history:
        embed.description = "No scheduled quizzes completed yet."
        return embed
    lines = []
    for entry in list(reversed(history))[:15]:
        line = f"✅ `{entry['id']}`"
        if entry['question_count'] is not None:
            line += f" • {entry['question_count']} questions"
        if entry['timestamp']:
            line += f" • created {datetime.fromtimestamp(entry['timestamp']):%Y-%m-%d %H:%M}"
        lines.append(line)
    embed.description = "\n".join(lines)
    return embed


class QuizBot(commands.Bot):
    """Discord front end for quiz sessions. One controller per channel."""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.quiz_engine: Optional[QuizEngine] = None
        self.store: Optional[JsonFileStore] = None
        self.controllers: Dict[int, QuizController] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")

        self.config_manager = ConfigManager()
        if self.app_config:
            self.apply_configuration()

        self.data_manager = DataManager(self.config_manager.get_quiz_directory())
        self.quiz_engine = QuizEngine()
        self.store = JsonFileStore(self.config_manager.get_data_file())

        self.load_quiz_data()
        self.setup_commands()

        logger.info("Bot setup completed successfully")

    def apply_configuration(self):
        """Apply the 'quiz' section of the configuration file."""
        result = self.config_manager.apply_config(self.app_config.get('quiz', {}))
        for key, error in result['errors'].items():
            logger.warning(f"Config value '{key}' ignored: {error}")
        logger.info(f"Configuration applied: {', '.join(result['applied']) or 'defaults'}")
        for issue in self.config_manager.validate_settings()['issues']:
            logger.warning(f"Configuration issue: {issue}")

    def load_quiz_data(self):
        question_sets = self.data_manager.load_question_sets()
        summary = self.data_manager.get_loading_summary()
        logger.info(
            f"Loaded {summary['total_files']} question files in {len(question_sets)} folders "
            f"from {summary['quiz_directory']}"
        )
        for error in summary['errors']:
            logger.warning(f"Question loading problem: {error}")

    def get_controller(self, channel_id: int) -> QuizController:
        controller = self.controllers.get(channel_id)
        if controller is None:
            controller = QuizController(
                self.store,
                data_manager=self.data_manager,
                config_manager=self.config_manager,
                quiz_engine=self.quiz_engine,
                session_key=str(channel_id)
            )
            controller.on_session_complete(
                lambda result, channel_id=channel_id: logger.info(
                    f"Channel {channel_id} finished a quiz in '{result.folder}' "
                    f"with {result.correct_answers}/{result.total_questions}"
                )
            )
            self.controllers[channel_id] = controller
        return controller

    def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="folders", description="List question folders and files")
        async def folders_command(interaction: discord.Interaction):
            await self.handle_folders(interaction)

        @self.tree.command(name="start", description="Start a quiz from a folder, a file, or your starred questions")
        @app_commands.describe(
            folder="Folder to take questions from",
            file="Single file inside the folder",
            starred="Use up to 30 of your starred questions instead",
            scheduled="Id of a scheduled quiz to take (see /scheduled)"
        )
        async def start_command(
            interaction: discord.Interaction,
            folder: Optional[str] = None,
            file: Optional[str] = None,
            starred: bool = False,
            scheduled: Optional[str] = None
        ):
            await self.handle_start(interaction, folder, file, starred, scheduled)


        @self.tree.command(name="answer", description="Answer the current question")
        @app_commands.describe(choice="Letter (A-D), number (1-4) or the option text")
        async def answer_command(interaction: discord.Interaction, choice: str):
            await self.handle_answer(interaction, choice)

        @self.tree.command(name="next", description="Go to the next question")
        async def next_command(interaction: discord.Interaction):
            await self.handle_next(interaction)

        @self.tree.command(name="skip", description="Skip the current question")
        async def skip_command(interaction: discord.Interaction):
            await self.handle_skip(interaction)

        @self.tree.command(name="pause", description="Pause the current quiz")
        async def pause_command(interaction: discord.Interaction):
            await self.handle_pause(interaction)

        @self.tree.command(name="resume", description="Resume the paused quiz")
        async def resume_command(interaction: discord.Interaction):
            await self.handle_resume(interaction)

        @self.tree.command(name="save", description="Save the current quiz to finish later")
        async def save_command(interaction: discord.Interaction):
            await self.handle_save(interaction)

        @self.tree.command(name="saved", description="List saved quizzes")
        async def saved_command(interaction: discord.Interaction):
            await self.handle_saved(interaction)

        @self.tree.command(name="continue", description="Continue a saved quiz")
        @app_commands.describe(quiz_id="Id shown by /saved")
        async def continue_command(interaction: discord.Interaction, quiz_id: str):
            await self.handle_continue(interaction, quiz_id)

        @self.tree.command(name="delete_saved", description="Delete a saved quiz")
        @app_commands.describe(quiz_id="Id shown by /saved")
        async def delete_saved_command(interaction: discord.Interaction, quiz_id: str):
            await self.handle_delete_saved(interaction, quiz_id)

        @self.tree.command(name="schedule", description="Create a scheduled quiz from your starred questions")
        async def schedule_command(interaction: discord.Interaction):
            await self.handle_schedule(interaction)

        @self.tree.command(name="scheduled", description="List scheduled quizzes")
        @app_commands.describe(completed="Only completed (True) or only upcoming (False) quizzes")
        async def scheduled_command(interaction: discord.Interaction, completed: Optional[bool] = None):
            await self.handle_scheduled(interaction, completed)

        @self.tree.command(name="delete_scheduled", description="Delete a scheduled quiz and its saved progress")
        @app_commands.describe(quiz_id="Id shown by /scheduled")
        async def delete_scheduled_command(interaction: discord.Interaction, quiz_id: str):
            await self.handle_delete_scheduled(interaction, quiz_id)

        @self.tree.command(name="history", description="List completed scheduled quizzes")
        async def history_command(interaction: discord.Interaction):
            await self.handle_history(interaction)

        @self.tree.command(name="stop", description="Stop the current quiz without saving")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="star", description="Star or unstar a question")
        @app_commands.describe(number="Question number in the quiz (defaults to the current one)")
        async def star_command(interaction: discord.Interaction, number: Optional[int] = None):
            await self.handle_star(interaction, number)

        @self.tree.command(name="report", description="Report a problem with a question")
        @app_commands.describe(reason="What is wrong", number="Question number (defaults to the current one)")
        async def report_command(interaction: discord.Interaction, reason: str, number: Optional[int] = None):
            await self.handle_report(interaction, reason, number)

        @self.tree.command(name="stats", description="Show statistics overall, for a folder, or for a file")
        async def stats_command(
            interaction: discord.Interaction,
            folder: Optional[str] = None,
            file: Optional[str] = None
        ):
            await self.handle_stats(interaction, folder, file)

        @self.tree.command(name="reset_stats", description="Reset statistics of a folder or a file")
        async def reset_stats_command(interaction: discord.Interaction, folder: str, file: Optional[str] = None):
            await self.handle_reset_stats(interaction, folder, file)

        @self.tree.command(name="retry_stats", description="Save statistics that failed to save when a quiz finished")
        async def retry_stats_command(interaction: discord.Interaction):
            await self.handle_retry_stats(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync commands: {e}")

    async def close(self):
        if self.quiz_engine is not None:
            await self.quiz_engine.shutdown()
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        try:
            help_embed = discord.Embed(
                title="🎯 Quiz Bot Commands",
                description="Take quizzes, save them for later and track your statistics",
                color=COLOR_SUCCESS
            )
            help_embed.add_field(
                name="🎮 Quiz",
                value=(
                    "`/folders` - List question folders and files\n"
                    "`/start <folder> [file]` - Start a quiz\n"
                    "`/start starred:True` - Quiz yourself on starred questions\n"
                    "`/answer <choice>` - Answer the current question\n"
                    "`/next` - Next question • `/skip` - Skip the question\n"
                    "`/pause` • `/resume` - Pause and resume\n"
                    "`/stop` - Stop without saving"
                ),
                inline=False
            )
            help_embed.add_field(
                name="💾 Saved Quizzes",
                value=(
                    "`/save` - Save the quiz to finish later\n"
                    "`/saved` - List saved quizzes\n"
                    "`/continue <id>` - Continue a saved quiz\n"
                    "`/delete_saved <id>` - Delete a saved quiz"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📅 Scheduled Quizzes",
                value=(
                    "`/schedule` - Create a quiz from your starred questions\n"
                    "`/scheduled [completed]` - List scheduled quizzes\n"
                    "`/start scheduled:<id>` - Take or resume a scheduled quiz\n"
                    "`/delete_scheduled <id>` - Delete a scheduled quiz\n"
                    "`/history` - Completed scheduled quizzes"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⭐ Review",
                value=(
                    "`/star [number]` - Star or unstar a question\n"
                    "`/report <reason> [number]` - Report a problem with a question\n"
                    "`/stats [folder] [file]` - Show statistics\n"
                    "`/reset_stats <folder> [file]` - Reset statistics\n"
                    "`/retry_stats` - Save statistics that failed to save"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            await interaction.response.send_message(embed=help_embed)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_folders(self, interaction: discord.Interaction):
        folders = self.data_manager.get_folders()
        embed = discord.Embed(title="📚 Question Folders", color=COLOR_INFO)
        if not folders:
            embed.description = "No question files found. Add JSON files to the quizzes directory."
        for folder in folders[:25]:
            files = self.data_manager.get_files(folder)
            embed.add_field(
                name=f"{folder} ({self.data_manager.get_question_count(folder)} questions)",
                value=", ".join(f"`{name}`" for name in files) or "-",
                inline=False
            )
        await interaction.response.send_message(embed=embed)

    async def handle_start(
        self,
        interaction: discord.Interaction,
        folder: Optional[str],
        file_name: Optional[str],
        starred: bool,
        scheduled_id: Optional[str] = None
    ):
        controller = self.get_controller(interaction.channel_id)
        try:
            if scheduled_id:
                result = controller.start_scheduled(quiz_id=scheduled_id.strip())
            elif starred:
                result = controller.start_scheduled()
            elif not folder:
                await self.send_error_response(
                    interaction, "Choose a folder, or use `starred:True`. See `/folders`.", "❌ Missing Folder"
                )
                return
            else:
                result = controller.start_quiz(folder, file_name)

            if not result['success']:
                await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Error")
                return

            await interaction.response.send_message(embed=build_question_embed(controller.session))
        except discord.HTTPException as e:
            logger.error(f"Error in start command: {e}")

    async def handle_answer(self, interaction: discord.Interaction, choice: str):
        controller = self.get_controller(interaction.channel_id)
        session = controller.session
        if session is None or session.completed:
            await self.send_error_response(interaction, "No quiz is running here. Start one with `/start`.")
            return

        try:
            choice_text = resolve_choice(session.current_question, choice)
        except ValueError as e:
            await self.send_error_response(interaction, str(e), "❌ Invalid Choice")
            return

        result = controller.answer_quiz(choice_text)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return
        await interaction.response.send_message(embed=build_reveal_embed(session, result['correct']))

    async def _send_advance_result(self, interaction: discord.Interaction, controller: QuizController, result: Dict[str, Any]):
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return

        if result['completed']:
            embed = build_result_embed(result['result'], controller.session.questions)
            await interaction.response.send_message(embed=embed)
            if not result['statistics_saved']:
                await self.send_warning_response(
                    interaction,
                    f"{result['user_message']} Use `/retry_stats` to save your statistics once storage is back.",
                    "⚠️ Statistics Not Saved"
                )
            return

        await interaction.response.send_message(embed=build_question_embed(controller.session))

    async def handle_next(self, interaction: discord.Interaction):
        controller = self.get_controller(interaction.channel_id)
        await self._send_advance_result(interaction, controller, controller.next_quiz_question())

    async def handle_skip(self, interaction: discord.Interaction):
        controller = self.get_controller(interaction.channel_id)
        await self._send_advance_result(interaction, controller, controller.skip_quiz_question())

    async def handle_pause(self, interaction: discord.Interaction):
        result = self.get_controller(interaction.channel_id).pause_quiz()
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return

        info = result['session_info']
        embed = discord.Embed(
            title="⏸️ Already Paused" if "already" in result['message'] else "⏸️ Quiz Paused",
            description=(
                f"Question {info['current_question']}/{info['total_questions']} • "
                f"Score {info['score']} • {format_duration(info['elapsed_timer'])} elapsed"
            ),
            color=COLOR_WARNING
        )
        embed.add_field(name="▶️ Resume", value="Use `/resume` to continue the quiz", inline=False)
        await interaction.response.send_message(embed=embed)

    async def handle_resume(self, interaction: discord.Interaction):
        controller = self.get_controller(interaction.channel_id)
        result = controller.resume_quiz()
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return
        await interaction.response.send_message(embed=build_question_embed(controller.session))

    async def handle_save(self, interaction: discord.Interaction):
        result = self.get_controller(interaction.channel_id).save_quiz()
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Save Failed")
            return
        embed = discord.Embed(
            title="💾 Quiz Saved",
            description=f"Continue any time with `/continue {result['session_id']}`",
            color=COLOR_SUCCESS
        )
        await interaction.response.send_message(embed=embed)

    async def handle_saved(self, interaction: discord.Interaction):
        controller = self.get_controller(interaction.channel_id)
        try:
            summaries = controller.snapshots.list_saved()
        except StoreUnavailable as e:
            logger.error(f"Listing saved quizzes failed: {e}")
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        await interaction.response.send_message(embed=build_saved_list_embed(summaries), ephemeral=True)

    async def handle_continue(self, interaction: discord.Interaction, quiz_id: str):
        controller = self.get_controller(interaction.channel_id)
        result = controller.resume_saved_quiz(quiz_id.strip())
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Continue")
            return
        await interaction.response.send_message(embed=build_question_embed(controller.session))

    async def handle_delete_saved(self, interaction: discord.Interaction, quiz_id: str):
        result = self.get_controller(interaction.channel_id).delete_saved_quiz(quiz_id.strip())
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Delete")
            return
        await self.send_info_response(interaction, f"Saved quiz `{quiz_id.strip()}` was deleted.", "🗑️ Saved Quiz Deleted")

    async def handle_schedule(self, interaction: discord.Interaction):
        result = self.get_controller(interaction.channel_id).create_scheduled()
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Create Quiz")
            return
        embed = discord.Embed(
            title="📅 Scheduled Quiz Created",
            description=(
                f"{result['question_count']} starred questions are ready. "
                f"Take the quiz with `/start scheduled:{result['quiz_id']}`"
            ),
            color=COLOR_SUCCESS
        )
        await interaction.response.send_message(embed=embed)

    async def handle_scheduled(self, interaction: discord.Interaction, completed: Optional[bool]):
        controller = self.get_controller(interaction.channel_id)
        try:
            summaries = controller.scheduled.list_quizzes(completed)
        except StoreUnavailable as e:
            logger.error(f"Listing scheduled quizzes failed: {e}")
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        await interaction.response.send_message(embed=build_scheduled_list_embed(summaries), ephemeral=True)

    async def handle_delete_scheduled(self, interaction: discord.Interaction, quiz_id: str):
        result = self.get_controller(interaction.channel_id).delete_scheduled_quiz(quiz_id.strip())
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Delete")
            return
        await self.send_info_response(
            interaction, f"Scheduled quiz `{quiz_id.strip()}` was deleted.", "🗑️ Scheduled Quiz Deleted"
        )

    async def handle_history(self, interaction: discord.Interaction):
        controller = self.get_controller(interaction.channel_id)
        try:
            history = controller.scheduled.completed_history()
        except StoreUnavailable as e:
            logger.error(f"Reading quiz history failed: {e}")
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        await interaction.response.send_message(embed=build_history_embed(history), ephemeral=True)

    async def handle_stop(self, interaction: discord.Interaction):
        result = self.get_controller(interaction.channel_id).stop_quiz()
        if not result['success']:
            await self.send_info_response(interaction, result['user_message'])
            return
        info = result['session_info']
        embed = discord.Embed(
            title="⏹️ Quiz Stopped",
            description=f"Stopped at question {info['current_question']}/{info['total_questions']}. Progress was not saved.",
            color=COLOR_WARNING
        )
        await interaction.response.send_message(embed=embed)

    async def handle_star(self, interaction: discord.Interaction, number: Optional[int]):
        controller = self.get_controller(interaction.channel_id)
        try:
            starred = controller.toggle_star_current(None if number is None else number - 1)
        except (LookupError, ValueError) as e:
            await self.send_error_response(interaction, str(e))
            return
        except StoreUnavailable:
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        except QuizControllerError as e:
            result = controller._handle_session_error(e, "star")
            await self.send_error_response(interaction, result['user_message'])
            return
        await self.send_info_response(
            interaction,
            "⭐ Question starred" if starred else "Question unstarred",
            "⭐ Starred Questions"
        )

    async def handle_report(self, interaction: discord.Interaction, reason: str, number: Optional[int]):
        controller = self.get_controller(interaction.channel_id)
        try:
            controller.report_current_question(reason, None if number is None else number - 1)
        except (LookupError, ValueError) as e:
            await self.send_error_response(interaction, str(e))
            return
        except StoreUnavailable:
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        except QuizControllerError as e:
            result = controller._handle_session_error(e, "report")
            await self.send_error_response(interaction, result['user_message'])
            return
        await self.send_info_response(interaction, "Thanks! The question was reported for review.", "📝 Report Sent")

    async def handle_stats(self, interaction: discord.Interaction, folder: Optional[str], file_name: Optional[str]):
        statistics = self.get_controller(interaction.channel_id).statistics
        try:
            if folder and file_name:
                embed = build_stats_embed(f"📊 {folder}/{file_name}", statistics.get_file_stats(folder, file_name))
            elif folder:
                embed = build_stats_embed(f"📊 {folder}", statistics.get_folder_stats(folder))
            else:
                overall = statistics.get_overall_stats(self.data_manager.get_folders())
                embed = discord.Embed(title="📊 Overall Statistics", color=COLOR_INFO)
                embed.add_field(name="Quizzes completed", value=str(overall['quizzes_completed']), inline=True)
                embed.add_field(name="Accuracy", value=f"{overall['accuracy']}%", inline=True)
                embed.add_field(name="Questions", value=f"{overall['correct_answers']}/{overall['total_questions']}", inline=True)
                for name, performance in list(overall['per_folder'].items())[:20]:
                    embed.add_field(
                        name=name,
                        value=f"{performance['accuracy']}% over {performance['quizzes_completed']} quizzes",
                        inline=False
                    )
        except StoreUnavailable as e:
            logger.error(f"Reading statistics failed: {e}")
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        await interaction.response.send_message(embed=embed)

    async def handle_reset_stats(self, interaction: discord.Interaction, folder: str, file_name: Optional[str]):
        statistics = self.get_controller(interaction.channel_id).statistics
        try:
            deleted = statistics.reset_statistics(folder, file_name)
        except StoreUnavailable as e:
            logger.error(f"Resetting statistics failed: {e}")
            await self.send_error_response(interaction, "Progress storage is unavailable right now.")
            return
        target = f"{folder}/{file_name}" if file_name else folder
        message = f"Statistics for **{target}** were reset." if deleted else f"**{target}** had no statistics."
        await self.send_info_response(interaction, message, "🗑️ Statistics Reset")

    async def handle_retry_stats(self, interaction: discord.Interaction):
        result = self.get_controller(interaction.channel_id).retry_quiz_statistics()
        if result['success']:
            await self.send_info_response(interaction, "Your quiz statistics are saved now.", "📊 Statistics Saved")
        elif result['error_type'] == 'NothingPending':
            await self.send_info_response(interaction, result['user_message'])
        else:
            await self.send_warning_response(
                interaction,
                f"{result['user_message']} Nothing was lost; try `/retry_stats` again later.",
                "⚠️ Statistics Not Saved"
            )

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        embed = discord.Embed(title=title, description=message, color=COLOR_ERROR)
        embed.set_footer(text="If this error persists, try using /help for available commands")
        await self._send_embed(interaction, embed, "error")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        embed = discord.Embed(title=title, description=message, color=COLOR_INFO)
        await self._send_embed(interaction, embed, "info")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        embed = discord.Embed(title=title, description=message, color=COLOR_WARNING)
        await self._send_embed(interaction, embed, "warning")

    async def _send_embed(self, interaction: discord.Interaction, embed: discord.Embed, kind: str):
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error(f"Failed to send {kind} response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting QuizCraft bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
