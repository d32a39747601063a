"""User-facing (Vietnamese) messages shown as flash alerts and API errors."""

ROLE_LABELS = {
    "student": "Học sinh",
    "teacher": "Giáo viên",
    "admin": "Quản trị viên",
}

MISSING_FIELDS = "Vui lòng điền đầy đủ thông tin"
PASSWORD_TOO_SHORT = "Mật khẩu phải có ít nhất 6 ký tự"
PASSWORD_MISMATCH = "Mật khẩu xác nhận không khớp"
EMAIL_IN_USE = "Email đã được sử dụng"
INVALID_EMAIL = "Email không hợp lệ"
INVALID_ROLE = "Vai trò không hợp lệ."
SIGNUP_FAILED = "Đăng ký thất bại. Vui lòng thử lại."
SIGNUP_SUCCESS = "Đăng ký thành công! Vui lòng đăng nhập."

USER_NOT_FOUND = "Tài khoản không tồn tại"
WRONG_PASSWORD = "Mật khẩu không đúng"
LOGIN_FAILED = "Đăng nhập thất bại. Vui lòng thử lại."
LOGGED_OUT = "Bạn đã đăng xuất."

ASSIGNMENT_NOT_FOUND = "Không tìm thấy thông tin bài tập."
EMPTY_SUBMISSION = "Vui lòng nhập nội dung, tải tệp hoặc ghi âm trả lời"
SUBMISSION_SUCCESS = "Bài tập đã được nộp thành công!"
SUBMISSION_FAILED = "Có lỗi xảy ra khi nộp bài. Vui lòng thử lại."
ATTACHMENT_TOO_LARGE = "Tệp {name} vượt quá giới hạn {limit}MB."

VIDEO_NOT_FOUND = "Không tìm thấy video."
VIDEO_UPLOAD_SUCCESS = "Video đã được tải lên thành công!"
VIDEO_UPLOAD_FAILED = "Tải video thất bại. Vui lòng thử lại."
VIDEO_SOURCE_REQUIRED = "Vui lòng chọn tệp video hoặc nhập đường dẫn."
VIDEO_UNSUPPORTED_TYPE = "Chỉ hỗ trợ MP4, MOV, AVI."
VIDEO_TOO_LARGE = "Video vượt quá giới hạn {limit}MB."
VIDEO_UPDATED = "Đã cập nhật video."
VIDEO_DELETED = "Đã xóa video."
STORAGE_NOT_CONFIGURED = "Kho lưu trữ chưa được cấu hình."

GRADE_SUCCESS = "Đã chấm điểm thành công!"
GRADE_FAILED = "Chấm điểm thất bại. Vui lòng thử lại."
SUBMISSION_NOT_FOUND = "Không tìm thấy bài nộp."
INVALID_SCORE = "Điểm phải là số từ 0 đến 10, bước 0.5."

ASSIGNMENT_CREATED = "Đã tạo bài tập."
ASSIGNMENT_DELETED = "Đã xóa bài tập."
ASSIGNMENT_TITLE_REQUIRED = "Vui lòng nhập tiêu đề bài tập."
COURSE_CREATED = "Đã tạo khóa học."
COURSE_TITLE_REQUIRED = "Vui lòng nhập tên khóa học."

FORBIDDEN = "Bạn không có quyền thực hiện thao tác này."
PROGRESS_SAVE_FAILED = "Không thể lưu tiến độ học tập."

ASSIGNMENT_SAVE_FAILED = "Không thể tạo bài tập. Vui lòng thử lại."
ASSIGNMENT_DELETE_FAILED = "Không thể xóa bài tập. Vui lòng thử lại."
COURSE_SAVE_FAILED = "Không thể tạo khóa học. Vui lòng thử lại."
VIDEO_UPDATE_FAILED = "Không thể cập nhật video. Vui lòng thử lại."

FIELD_LABELS = {
    "video_id": "Video",
    "course_id": "Khóa học",
    "teacher_id": "Giáo viên",
    "duration": "Thời lượng",
    "due_date": "Hạn nộp",
}
INVALID_NUMBER = "{field} phải là số nguyên."
NUMBER_TOO_SMALL = "{field} phải lớn hơn hoặc bằng {min_value}."
INVALID_DATE = "{field} phải có định dạng ngày YYYY-MM-DD."
INVALID_STATUS_FILTER = "Trạng thái phải là 'pending' hoặc 'all'."
INVALID_PERIOD = "Khoảng thời gian phải là 'week' hoặc 'month'."
INVALID_PROGRESS_BATCH = "Dữ liệu tiến độ học tập không hợp lệ."
