"""
邮件通知服务

通过 yagmail 发送 SMTP 邮件。发送在线程池中执行并受 email_timeout 限制，
失败只记录日志，不抛给调用方。
"""
import asyncio
from functools import lru_cache
from typing import Any, Dict, Optional

import yagmail
from loguru import logger

from app.core.config import Settings, settings as default_settings


class EmailService:
    """邮件服务"""

    def __init__(self, settings: Settings = default_settings):
        self.enabled = settings.email_enabled
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.timeout = settings.email_timeout
        self.frontend_url = settings.frontend_url

    def _send_sync(self, to: str, subject: str, contents: str) -> None:
        with yagmail.SMTP(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            smtp_starttls=True,
            smtp_ssl=False,
        ) as smtp:
            smtp.send(to=to, subject=subject, contents=contents)

    async def deliver(self, to: str, subject: str, contents: str) -> bool:
        """发送单封邮件，仅尝试一次；返回是否发送成功"""
        if not to:
            logger.warning("收件人为空，跳过邮件: {}", subject)
            return False

        if not self.enabled:
            logger.info("邮件服务未启用，跳过发送 -> {} | {}", to, subject)
            return False

        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, self._send_sync, to, subject, contents),
                timeout=self.timeout,
            )
        except Exception:
            logger.exception("邮件发送失败 -> {} | {}", to, subject)
            return False

        logger.info("邮件已发送 -> {} | {}", to, subject)
        return True

    async def send_final_evaluation_email(
        self,
        student: Dict[str, Any],
        supervisor: Dict[str, Any],
        evaluation: Dict[str, Any],
        internship: Dict[str, Any],
    ) -> bool:
        """最终成绩发布通知"""
        subject = f"Final Internship Evaluation - {internship.get('position') or 'Internship'}"
        contents = "\n".join([
            f"Dear {student.get('name')},",
            "",
            f"Your supervisor {supervisor.get('name')} has released your final internship evaluation "
            f"for {internship.get('position')} at {internship.get('company_name')}.",
            "",
            f"Supervisor marks: {evaluation['supervisor_marks']}/60",
            f"Company marks: {evaluation['company_marks']}/40",
            f"Total marks: {evaluation['total_marks']}/100",
            f"Grade: {evaluation['grade']}",
            "",
            f"View the details at {self.frontend_url}/student/result",
        ])
        return await self.deliver(student.get("email"), subject, contents)

    async def send_interview_scheduled_email(
        self,
        recipient: Dict[str, Any],
        interview: Dict[str, Any],
        internship: Dict[str, Any],
        student_name: Optional[str] = None,
    ) -> bool:
        """面试安排通知（学生与导师各发一封）"""
        about = f" for {student_name}" if student_name else ""
        subject = f"Interview Scheduled{about} - {internship.get('position')}"
        contents = "\n".join([
            f"Dear {recipient.get('name')},",
            "",
            f"{internship.get('company_name')} has scheduled an interview{about} "
            f"for the position {internship.get('position')}.",
            "",
            f"Date: {interview.get('date')}",
            f"Mode: {interview.get('mode')}",
            f"Location: {interview.get('location') or '-'}",
            f"Notes: {interview.get('notes') or '-'}",
        ])
        return await self.deliver(recipient.get("email"), subject, contents)

    async def send_application_status_email(
        self,
        recipient: Dict[str, Any],
        status: str,
        internship: Dict[str, Any],
        comments: Optional[str] = None,
    ) -> bool:
        """申请状态变化通知"""
        subject = f"Application Update - {internship.get('position')}"
        lines = [
            f"Dear {recipient.get('name')},",
            "",
            f"Your application for {internship.get('position')} at {internship.get('company_name')} "
            f"is now: {status}.",
        ]
        if comments:
            lines += ["", f"Comments: {comments}"]
        return await self.deliver(recipient.get("email"), subject, "\n".join(lines))


@lru_cache
def get_email_service() -> EmailService:
    """获取邮件服务单例"""
    return EmailService()
